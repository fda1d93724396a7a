"""Job controller, personal accounts, in-memory storage, queries and errors."""

__version__ = "0.1.0"