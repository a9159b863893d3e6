# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Domus Messaging Logging Adapter.

Structured logging with pluggable backends. ``StdoutLogger`` writes JSON
lines for production; ``SilentLogger`` keeps entries in memory for tests.

Example:
    >>> from domus_config import AdapterConfig_Logger, DriverConfig_Logger_Silent
    >>> from domus_logging import create_logger
    >>> test_logger = create_logger(
    ...     AdapterConfig_Logger(logger_type="silent", driver=DriverConfig_Logger_Silent())
    ... )
    >>> test_logger.info("Thread opened", thread_id="t1")
"""

__version__ = "0.1.0"

from .factory import create_logger
from .logger import Logger
from .silent_logger import SilentLogger
from .stdout_logger import StdoutLogger

__all__ = [
    "__version__",
    "Logger",
    "SilentLogger",
    "StdoutLogger",
    "create_logger",
]
