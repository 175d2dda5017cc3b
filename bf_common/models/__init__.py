"""Shared fleet models."""

from .machine import CommandResult, Fleet, Machine, RemoteSession

__all__ = ["CommandResult", "Fleet", "Machine", "RemoteSession"]
