import pytest

ENV_VARS = (
    "REMOTE_CONFIG_FILE",
    "REMOTE_CONFIG_ENDPOINT",
    "REMOTE_CONFIG_PROJECT_ID",
    "REMOTE_CONFIG_API_KEY",
    "REMOTE_CONFIG_DATA_DIR",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, tmp_path_factory, monkeypatch):
    """Keep settings discovery away from the real home and working directories."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
