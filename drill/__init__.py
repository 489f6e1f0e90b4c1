"""Practice-session engine for language drill pages."""

__version__ = "0.1.0"
