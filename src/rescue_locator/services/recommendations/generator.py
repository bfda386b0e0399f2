"""Sources of raw, un-ranked provider candidates."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx
from pydantic import ValidationError

from ...config import Settings, settings as default_settings
from ...data.catalog_repository import ProviderCatalog
from ...data.normalization import normalize_generated_record
from ...errors import CandidateFetchFailed
from ...models.domain import MatchCriteria, Position, Provider
from ...schemas.providers import GeneratedContactRecord
from ..geospatial import normalize_city

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CandidateBatch:
    providers: tuple[Provider, ...]
    guidance: tuple[str, ...] = ()


class RecommendationGenerator(Protocol):
    async def fetch_candidates(self, position: Optional[Position], criteria: MatchCriteria) -> CandidateBatch:
        """Return raw candidates or raise ``CandidateFetchFailed``."""
        ...


class CatalogRecommendationGenerator:
    """Candidates from the static catalog for the caller's city."""

    def __init__(self, catalog: ProviderCatalog) -> None:
        self.catalog = catalog

    async def fetch_candidates(self, position: Optional[Position], criteria: MatchCriteria) -> CandidateBatch:
        if position is None:
            raise CandidateFetchFailed("No position to look up catalog providers for")
        city = normalize_city(position.address.city)
        if city is not None and self.catalog.covers(city):
            return CandidateBatch(providers=self.catalog.providers_for_city(city))
        if position.coordinates is not None:
            # Unknown or uncovered city: let the distance bound pick nearby providers.
            return CandidateBatch(providers=self.catalog.all_providers())
        if city is not None:
            logger.info(f"Catalog has no providers for '{city}'")
            return CandidateBatch(providers=())
        raise CandidateFetchFailed("Position has neither coordinates nor a recognised city")


SYSTEM_PROMPT = (
    "You coordinate emergency contacts for animal rescue in India. "
    "Reply with a JSON object containing 'emergencyContacts' (a list of objects with "
    "name, type, phone, email, address, city, coordinates [lat, lng] or null, "
    "specialization (list), availability, is24x7, urgencyLevel, rating, description, services) "
    "and 'generalGuidance' (object with immediateSteps and safetyTips lists)."
)


def _describe_location(position: Optional[Position]) -> str:
    if position is None:
        return "No location data available"
    lines = [f"Address: {position.address.formatted}"]
    if position.coordinates is not None:
        lines.insert(0, f"GPS Location: {position.coordinates.lat}, {position.coordinates.lng}")
    if position.address.city:
        lines.append(f"City: {position.address.city}")
    if position.address.state:
        lines.append(f"State: {position.address.state}")
    return "\n".join(lines)


def parse_candidate_payload(payload: Any) -> CandidateBatch:
    """Turn a generator JSON document into a batch, skipping malformed contacts."""
    if not isinstance(payload, dict):
        raise CandidateFetchFailed("Generator payload is not a JSON object")
    contacts = payload.get("emergencyContacts")
    if not isinstance(contacts, list):
        raise CandidateFetchFailed("Generator payload has no 'emergencyContacts' list")

    providers: list[Provider] = []
    for index, raw in enumerate(contacts):
        if not isinstance(raw, dict):
            logger.warning(f"Skipping non-object contact at index {index}")
            continue
        try:
            record = GeneratedContactRecord.model_validate(raw)
        except ValidationError as exc:
            logger.warning(f"Skipping malformed contact at index {index}: {exc.error_count()} error(s)")
            continue
        providers.append(normalize_generated_record(record, index))

    guidance: list[str] = []
    general = payload.get("generalGuidance")
    if isinstance(general, dict):
        for key in ("immediateSteps", "safetyTips"):
            steps = general.get(key)
            if isinstance(steps, list):
                guidance.extend(str(step) for step in steps if step)
        when_to_call = general.get("whenToCall")
        if isinstance(when_to_call, str) and when_to_call:
            guidance.append(when_to_call)
    return CandidateBatch(providers=tuple(providers), guidance=tuple(guidance))


class ChatCompletionRecommendationGenerator:
    """Candidates from an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 30.0,
        count: int = 5,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Chat completion API key is not configured.")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.count = count
        self._client_factory = client_factory

    def _messages(self, position: Optional[Position], criteria: MatchCriteria) -> list[dict[str, str]]:
        location = _describe_location(position)
        request = (
            f"Generate {self.count} emergency contacts for animal rescue.\n{location}\n"
            f"Urgency: {criteria.urgency_tier.value}. Animal type: {criteria.specialization}."
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": request},
        ]

    async def fetch_candidates(self, position: Optional[Position], criteria: MatchCriteria) -> CandidateBatch:
        body = {
            "model": self.model,
            "messages": self._messages(position, criteria),
            "temperature": 0.2,
            "response_format": {"type": "json_object"},
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            factory = self._client_factory or (lambda: httpx.AsyncClient(timeout=self.timeout_seconds))
            async with factory() as client:
                response = await client.post(f"{self.base_url}/chat/completions", json=body, headers=headers)
                response.raise_for_status()
            completion = response.json()
            content = completion["choices"][0]["message"]["content"]
            payload = json.loads(content)
        except httpx.TimeoutException as exc:
            raise CandidateFetchFailed("Recommendation generator timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise CandidateFetchFailed(
                f"Recommendation generator returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise CandidateFetchFailed(f"Recommendation generator request failed: {exc}") from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise CandidateFetchFailed("Recommendation generator returned a malformed completion") from exc

        batch = parse_candidate_payload(payload)
        logger.info(f"Generator returned {len(batch.providers)} usable contact(s)")
        return batch


def build_generator(catalog: ProviderCatalog, config: Settings | None = None) -> RecommendationGenerator:
    config = config or default_settings
    if config.generator_backend == "chat_completion":
        if not config.chat_completion_api_key:
            logger.warning("Chat completion backend selected without an API key; using the catalog")
            return CatalogRecommendationGenerator(catalog)
        return ChatCompletionRecommendationGenerator(
            api_key=config.chat_completion_api_key,
            base_url=config.chat_completion_base_url,
            model=config.chat_completion_model,
            timeout_seconds=config.chat_completion_timeout_seconds,
            count=config.candidate_count,
        )
    return CatalogRecommendationGenerator(catalog)
