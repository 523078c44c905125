"""Public entry point for embedding the client core."""

from .field_ops_api import FieldOpsAPI

__all__ = ["FieldOpsAPI"]
