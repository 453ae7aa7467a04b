"""Static configuration for estatesync.

All user-editable settings (pipeline, matching, oracle, storage, dedup,
logging) live in a single JSON file for quick edits without touching Python.
Secrets such as OPENAI_API_KEY come from the environment (.env).
"""

import json
import logging
import os

from dotenv import load_dotenv

from estatesync.core.config import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONCURRENCY,
    DEFAULT_MATCH_INTERVAL,
    DedupConfig,
    MatchingConfig,
    PipelineConfig,
)

load_dotenv()

PROJECT_ROOT = os.getcwd()

# config.json is looked up in the working directory unless overridden.
CONFIG_PATH = os.getenv("ESTATESYNC_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema.

    A missing file means "use defaults" so the CLI works out of the box.
    """

    if not os.path.exists(CONFIG_PATH):
        logging.getLogger(__name__).debug("Config file not found: %s, using defaults", CONFIG_PATH)
        return {}

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Pipeline: chunk size in characters, tasks per concurrency window, and how
# many processed tasks trigger an intermediate matching pass.
_pipeline = _CONFIG.get("pipeline", {})
CHUNK_SIZE = int(_pipeline.get("chunk_size", DEFAULT_CHUNK_SIZE))
CONCURRENCY = int(_pipeline.get("concurrency", DEFAULT_CONCURRENCY))
MATCH_INTERVAL = int(_pipeline.get("match_interval", DEFAULT_MATCH_INTERVAL))

# Matching requests only carry the most recent N units/requirements.
_matching = _CONFIG.get("matching", {})
MATCH_MAX_UNITS = int(_matching.get("max_units", 200))
MATCH_MAX_REQUIREMENTS = int(_matching.get("max_requirements", 200))

# Model settings for the OpenAI adapter.
_oracle = _CONFIG.get("oracle", {})
EXTRACTION_MODEL = _oracle.get("extraction_model", "gpt-4o-mini")
MATCHING_MODEL = _oracle.get("matching_model", "gpt-4o")
TEMPERATURE = float(_oracle.get("temperature", 0.2))
TIMEOUT_SECONDS = float(_oracle.get("timeout_seconds", 120))

# Storage backend: "sqlite" (default) or "json".
_storage = _CONFIG.get("storage", {})
STORAGE_BACKEND = _storage.get("backend", "sqlite")
STORAGE_PATH = _storage.get(
    "path",
    "estatesync.db" if STORAGE_BACKEND == "sqlite" else "data.json",
)
if not os.path.isabs(STORAGE_PATH):
    STORAGE_PATH = os.path.join(PROJECT_ROOT, STORAGE_PATH)

# Batch locks older than this are considered abandoned by a crashed run.
STORAGE_LOCK_TTL_SECONDS = float(_storage.get("lock_ttl_seconds", 3600))

# Default persistence key when --user is not given.
DEFAULT_USER = os.getenv("ESTATESYNC_USER", _CONFIG.get("user", "default"))

# Entity deduplication: "off", "per_group" or "global".
DEDUP_MODE = _CONFIG.get("dedup", {}).get("mode", "off")

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})


def pipeline_config() -> PipelineConfig:
    return PipelineConfig(chunk_size=CHUNK_SIZE, concurrency=CONCURRENCY, match_interval=MATCH_INTERVAL)


def matching_config() -> MatchingConfig:
    return MatchingConfig(max_units=MATCH_MAX_UNITS, max_requirements=MATCH_MAX_REQUIREMENTS)


def dedup_config() -> DedupConfig:
    return DedupConfig(mode=DEDUP_MODE)
