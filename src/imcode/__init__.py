"""ImCode: chat-generated code organized into a virtual project tree."""

__version__ = "0.1.0"
