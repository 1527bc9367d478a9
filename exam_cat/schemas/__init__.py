"""Pydantic schemas for serializing engine values."""
from .cat import (
    CATResponseSchema,
    CATSettingsSchema,
    CATStateSchema,
)

__all__ = [
    "CATResponseSchema",
    "CATSettingsSchema",
    "CATStateSchema",
]
