"""Provisioning stages."""
