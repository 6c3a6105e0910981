"""Personal site assistant: retrieval-augmented answers about the site owner."""

__version__ = "1.0.0"
