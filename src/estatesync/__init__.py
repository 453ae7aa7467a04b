"""estatesync: turn exported broker chats into property units, client
requirements and scored matches."""

__version__ = "0.1.0"
