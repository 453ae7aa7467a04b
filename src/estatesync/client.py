"""OpenAI client factory for estatesync.

The client is built once per CLI command and injected into the oracle adapter,
so tests can swap in any object with the same interface.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from openai import AsyncOpenAI


def build_client() -> AsyncOpenAI:
    """Create an AsyncOpenAI client from environment variables.

    We read OPENAI_API_KEY (and optional OPENAI_BASE_URL) via python-dotenv to
    keep secrets out of the repo.
    """

    load_dotenv()

    api_key = os.getenv("OPENAI_API_KEY")
    base_url = os.getenv("OPENAI_BASE_URL") or None

    # Fail fast on missing credentials instead of failing every task later.
    if not api_key:
        raise RuntimeError("Missing OPENAI_API_KEY in environment")

    logging.getLogger(__name__).info("Initializing OpenAI client")

    return AsyncOpenAI(api_key=api_key, base_url=base_url)
