"""
Custom Exception Classes for Remote Config

Hierarchical exception structure for error handling across the engine.
"""


class RemoteConfigError(Exception):
    """Base exception for all remote config errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class TransportError(RemoteConfigError):
    """Document query or realtime channel failure (network, auth, bad collection)"""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
    ):
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"Transport Error: {message}", recoverable=True)


class SchemaError(RemoteConfigError):
    """Fetched record is missing the configured key or value attribute"""

    def __init__(
        self,
        message: str,
        record_id: str | None = None,
        attribute: str | None = None,
    ):
        self.record_id = record_id
        self.attribute = attribute
        super().__init__(f"Schema Error: {message}", recoverable=True)


class StorageError(RemoteConfigError):
    """Local file read/write failure"""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(f"Storage Error: {message}", recoverable=True)


class ConfigurationError(RemoteConfigError):
    """Required setup was not performed before use"""

    def __init__(self, message: str):
        super().__init__(f"Configuration Error: {message}", recoverable=False)
