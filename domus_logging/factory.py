# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Factory functions for creating logger instances."""

from typing import TypeAlias

from domus_config import (
    AdapterConfig_Logger,
    DriverConfig_Logger_Silent,
    DriverConfig_Logger_Stdout,
    create_adapter,
)

from .logger import Logger
from .silent_logger import SilentLogger
from .stdout_logger import StdoutLogger

_DriverConfig: TypeAlias = DriverConfig_Logger_Stdout | DriverConfig_Logger_Silent


def _build_stdout(config: _DriverConfig) -> Logger:
    if not isinstance(config, DriverConfig_Logger_Stdout):
        raise TypeError("driver config must be DriverConfig_Logger_Stdout")
    return StdoutLogger.from_config(config)


def _build_silent(config: _DriverConfig) -> Logger:
    if not isinstance(config, DriverConfig_Logger_Silent):
        raise TypeError("driver config must be DriverConfig_Logger_Silent")
    return SilentLogger.from_config(config)


def create_logger(config: AdapterConfig_Logger) -> Logger:
    """Create a logger from a typed adapter config.

    Example:
        >>> logger = create_logger(
        ...     AdapterConfig_Logger(
        ...         logger_type="stdout",
        ...         driver=DriverConfig_Logger_Stdout(level="INFO", name="messaging"),
        ...     )
        ... )
        >>> logger.info("Message posted", thread_id="t1")

    Raises:
        ValueError: If config is missing or logger_type is unknown
    """
    return create_adapter(
        config,
        adapter_name="logger",
        get_driver_type=lambda c: c.logger_type,
        get_driver_config=lambda c: c.driver,
        drivers={
            "stdout": _build_stdout,
            "silent": _build_silent,
        },
    )
