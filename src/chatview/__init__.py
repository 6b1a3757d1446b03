"""chatview — decrypt, browse and export archived chat history."""

__version__ = "0.1.0"
