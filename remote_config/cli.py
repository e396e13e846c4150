"""
Remote Config CLI - Fetch and Inspect Configs

Command-line tool for resolving remote configs from a terminal or script.

Usage:
    # Fetch (or load from cache) and print the active configs
    python -m remote_config fetch --config remote_config.yaml

    # Read one key from the local cache + defaults (no network)
    python -m remote_config get cdnUrl --type string

    # Fetch, then follow realtime updates until interrupted
    python -m remote_config watch

Output is JSON for easy parsing by scripts.
"""

import argparse
import asyncio
import json
import signal
import sys

from remote_config.common.exceptions import RemoteConfigError
from remote_config.common.logging_setup import get_service_logger
from remote_config.common.settings import RemoteConfigSettings, load_settings
from remote_config.services.config import RemoteConfigService

logger = get_service_logger("cli")


def _load(args: argparse.Namespace) -> RemoteConfigSettings:
    settings = load_settings(args.config)
    if args.cache_limit is not None:
        settings.cache_limit_hours = args.cache_limit
        settings.validate()
    return settings


async def fetch_configs(settings: RemoteConfigSettings, keys: list[str] | None = None) -> dict:
    """Run one resolution and report the outcome and active configs"""
    service = RemoteConfigService.from_settings(settings)
    try:
        outcome = await service.fetch_and_activate()
        configs = service.get_current_configs()
        if keys:
            configs = {key: service.get_string(key) for key in keys}
        return {**outcome.to_dict(), "configs": configs}
    finally:
        await service.close()


async def get_value(settings: RemoteConfigSettings, key: str, value_type: str) -> dict:
    """Resolve one key from the persisted snapshot and defaults only"""
    service = RemoteConfigService(data_dir=settings.data_dir, defaults=settings.defaults)
    service.store.replace(await service.cache.load_async())

    getters = {
        "string": service.get_string,
        "int": service.get_int,
        "bool": service.get_bool,
    }
    return {"key": key, "type": value_type, "value": getters[value_type](key)}


async def watch_configs(settings: RemoteConfigSettings) -> None:
    """Fetch once, then apply realtime updates until SIGINT/SIGTERM"""
    service = RemoteConfigService.from_settings(settings)
    shutdown = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda s, f: shutdown.set())

    def on_update(key: str, value: str) -> bool:
        print(json.dumps({"event": "update", "key": key, "value": value}), flush=True)
        return True

    try:
        outcome = await service.fetch_and_activate()
        print(json.dumps({**outcome.to_dict(), "configs": service.get_current_configs()}), flush=True)

        service.add_on_config_update_listener(on_update)
        await shutdown.wait()
    finally:
        await service.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="remote_config",
        description="Fetch, cache and inspect remote configs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to YAML settings file")
    parser.add_argument("--cache-limit", type=int, help="Cache validity in hours (0 = always fetch)")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    fetch_parser = subparsers.add_parser("fetch", help="Fetch and activate configs")
    fetch_parser.add_argument("--key", action="append", dest="keys", help="Only print this key (repeatable)")

    get_parser = subparsers.add_parser("get", help="Read one key without network access")
    get_parser.add_argument("key", help="Config key")
    get_parser.add_argument("--type", choices=["string", "int", "bool"], default="string", dest="value_type")

    subparsers.add_parser("watch", help="Fetch, then follow realtime updates")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = _load(args)

        if args.command == "fetch":
            result = asyncio.run(fetch_configs(settings, args.keys))
            print(json.dumps(result))
        elif args.command == "get":
            result = asyncio.run(get_value(settings, args.key, args.value_type))
            print(json.dumps(result))
        elif args.command == "watch":
            asyncio.run(watch_configs(settings))
    except RemoteConfigError as e:
        logger.error(f"{args.command} failed: {e}")
        print(json.dumps({"success": False, "error": str(e)}))
        return 1

    return 0
