"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CHUNK_SIZE = 2500
DEFAULT_CONCURRENCY = 8
DEFAULT_MATCH_INTERVAL = 15


@dataclass(frozen=True)
class PipelineConfig:
    """Chunking and scheduling settings for the extraction pipeline."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    concurrency: int = DEFAULT_CONCURRENCY
    match_interval: int = DEFAULT_MATCH_INTERVAL

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.concurrency <= 0:
            raise ValueError("concurrency must be positive")
        if self.match_interval <= 0:
            raise ValueError("match_interval must be positive")


@dataclass(frozen=True)
class MatchingConfig:
    """Payload bounds for one matching request (most recent N of each set)."""

    max_units: int = 200
    max_requirements: int = 200

    def __post_init__(self) -> None:
        if self.max_units <= 0:
            raise ValueError("max_units must be positive")
        if self.max_requirements <= 0:
            raise ValueError("max_requirements must be positive")


@dataclass(frozen=True)
class DedupConfig:
    """Entity-level deduplication policy.

    mode is one of "off", "per_group" or "global".
    """

    mode: str = "off"
