"""insightguard - Guarded question answering over PII-sensitive records."""

__version__ = "0.1.0"
