"""OpenAI adapter for the extraction and matching ports.

One chat completion per call, in JSON output mode. The adapter does not retry:
a failed call surfaces as an OracleError and the scheduler decides what to do.
"""

from __future__ import annotations

import json
import logging
from json import JSONDecodeError
from typing import Any

from openai import APIError, AsyncOpenAI

from estatesync.adapters.prompts import (
    EXTRACTION_SYSTEM_PROMPT,
    EXTRACTION_USER_TEMPLATE,
    MATCHING_SYSTEM_PROMPT,
    MATCHING_USER_TEMPLATE,
)
from estatesync.core.errors import OracleError
from estatesync.core.models import Platform, PropertyEntity

LOGGER = logging.getLogger(__name__)


def _matching_view(entity: PropertyEntity) -> dict[str, Any]:
    """Subset of entity fields sent for matching, to keep requests small."""

    return {
        "id": entity.id,
        "propertyType": entity.property_type,
        "community": entity.community,
        "price": entity.price,
        "size": entity.size,
    }


class OpenAIOracle:
    """Implements ExtractionOracle and MatchingOracle with AsyncOpenAI."""

    def __init__(
        self,
        client: AsyncOpenAI,
        extraction_model: str = "gpt-4o-mini",
        matching_model: str = "gpt-4o",
        temperature: float = 0.2,
        timeout_seconds: float = 120.0,
    ) -> None:
        self._client = client
        self.extraction_model = extraction_model
        self.matching_model = matching_model
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    async def extract(self, chunk_text: str, group_name: str, platform: Platform) -> list[dict[str, Any]]:
        user_content = EXTRACTION_USER_TEMPLATE.format(
            platform=platform.value,
            group_name=group_name,
            chunk_text=chunk_text,
        )
        payload = await self._complete(self.extraction_model, EXTRACTION_SYSTEM_PROMPT, user_content)
        entities = payload.get("entities")
        if not isinstance(entities, list):
            raise OracleError("Extraction response has no 'entities' array")
        return entities

    async def match(
        self,
        units: list[PropertyEntity],
        requirements: list[PropertyEntity],
    ) -> list[dict[str, Any]]:
        user_content = MATCHING_USER_TEMPLATE.format(
            units=json.dumps([_matching_view(unit) for unit in units], ensure_ascii=False),
            requirements=json.dumps([_matching_view(req) for req in requirements], ensure_ascii=False),
        )
        payload = await self._complete(self.matching_model, MATCHING_SYSTEM_PROMPT, user_content)
        matches = payload.get("matches")
        if not isinstance(matches, list):
            raise OracleError("Matching response has no 'matches' array")
        return matches

    async def _complete(self, model: str, system_prompt: str, user_content: str) -> dict[str, Any]:
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
                timeout=self.timeout_seconds,
            )
        except APIError as exc:
            raise OracleError(str(exc)) from exc

        if not response.choices:
            raise OracleError("Empty response from model")
        content = response.choices[0].message.content
        if not content:
            raise OracleError("Empty response from model")

        try:
            payload = json.loads(content)
        except JSONDecodeError as exc:
            LOGGER.debug("Unparseable model output: %s", content[:500])
            raise OracleError(f"Invalid JSON from model: {exc.msg}") from exc

        if not isinstance(payload, dict):
            raise OracleError("Model output is not a JSON object")
        return payload
