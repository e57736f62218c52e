"""vibecoder: an agent loop that edits an in-memory project until its checks pass."""

__version__ = "0.1.0"
