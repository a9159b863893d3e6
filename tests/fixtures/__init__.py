# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Shared test fixtures for messaging tests.

Usage:
    from tests.fixtures import FakeClock, create_test_service

    clock = FakeClock()
    service = create_test_service(clock=clock)
"""

from .messaging_fixtures import (  # noqa: F401
    ADMIN,
    DEFAULT_IDENTITIES,
    LANDLORD,
    LODGER,
    OTHER_LODGER,
    STAFF,
    FakeClock,
    create_test_service,
)

__all__ = [
    "ADMIN",
    "DEFAULT_IDENTITIES",
    "LANDLORD",
    "LODGER",
    "OTHER_LODGER",
    "STAFF",
    "FakeClock",
    "create_test_service",
]
