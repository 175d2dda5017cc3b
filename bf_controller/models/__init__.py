"""Controller models."""
