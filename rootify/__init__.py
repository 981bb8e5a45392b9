"""Chinese field-name to English translation by root dictionary."""

__version__ = "0.1.0"
