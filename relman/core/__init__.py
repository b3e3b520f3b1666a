"""Core types shared by every relman layer."""

from .clock import Clock, FixedClock, SystemClock
from .config import Config, ConfigError, load_config
from .errors import ErrorCode
from .result import Err, Ok, Result

__all__ = [
    # clock
    "Clock",
    "FixedClock",
    "SystemClock",
    # config
    "Config",
    "ConfigError",
    "load_config",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
]
