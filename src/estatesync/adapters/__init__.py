"""Adapters that connect the core to chat exports, OpenAI and storage."""
