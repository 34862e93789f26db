"""Card engines: runtime for self-describing interactive cards."""

__version__ = "0.1.0"
