"""Converter-based serialization core for CBOR-like and JSON-like data."""

__version__ = "1.0.0"
__all__ = ["options", "errors", "converter", "base"]