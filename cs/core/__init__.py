"""Core types: results, exit codes and configuration."""

from .config import (
    Alternate,
    ConfigError,
    HostBackend,
    HostEnvironment,
    Primary,
    ReleaseSettings,
    load_settings,
    resolve_backend,
)
from .errors import ErrorCode
from .result import Err, Ok, Result

__all__ = [
    # config
    "Alternate",
    "ConfigError",
    "HostBackend",
    "HostEnvironment",
    "Primary",
    "ReleaseSettings",
    "load_settings",
    "resolve_backend",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
]
