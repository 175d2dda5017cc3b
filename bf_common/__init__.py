"""Shared helpers for burst-fleet."""

from bf_common.api import FleetError, Machine, configure_logging

__all__ = ["configure_logging", "FleetError", "Machine"]
