from __future__ import annotations

import json

import httpx
import pytest

from rescue_locator.config import Settings
from rescue_locator.data.normalization import normalize_generated_record
from rescue_locator.errors import CandidateFetchFailed
from rescue_locator.models.domain import (
    Address,
    Coordinates,
    MatchCriteria,
    Position,
    PositionSource,
    ProviderOrigin,
    UrgencyTier,
)
from rescue_locator.schemas.providers import GeneratedContactRecord
from rescue_locator.services.recommendations import (
    CatalogRecommendationGenerator,
    ChatCompletionRecommendationGenerator,
    build_generator,
    parse_candidate_payload,
)

PAYLOAD = {
    "emergencyContacts": [
        {
            "name": "Koramangala Animal Clinic",
            "type": "Veterinary Hospital",
            "phone": 9876543210,
            "address": "Koramangala, Bengaluru",
            "coordinates": [12.9352, 77.6245],
            "specialization": "Dogs, Cats",
            "availability": "24/7",
            "urgencyLevel": "medium",
            "rating": 7,
        },
        {"name": "No Phone Rescue", "address": "Bengaluru"},
        "not a contact",
        {
            "name": "Lalbagh Bird Aid",
            "phone": "+91-80-1111-2222",
            "city": "Bangalore",
            "specialization": ["birds"],
            "is24x7": False,
            "urgencyLevel": "high",
            "rating": 4.2,
        },
    ],
    "generalGuidance": {
        "immediateSteps": ["Keep the animal warm"],
        "safetyTips": ["Wear gloves"],
        "whenToCall": "Call immediately if bleeding",
    },
}


def _gps(city: str | None = "Bengaluru") -> Position:
    return Position(
        coordinates=Coordinates(12.9716, 77.5946),
        address=Address(formatted=f"{city}, Karnataka", city=city, state="Karnataka"),
        accuracy_m=20.0,
        source=PositionSource.GPS,
    )


def test_generated_record_normalization():
    record = GeneratedContactRecord.model_validate(PAYLOAD["emergencyContacts"][0])

    provider = normalize_generated_record(record, 0)

    assert provider.id == "gen-0-koramangala-animal-clinic"
    assert provider.phone == "9876543210"
    assert provider.specializations == frozenset({"dog", "cat"})
    assert provider.is_24x7 is True
    assert provider.urgency_tier is UrgencyTier.STANDARD
    assert provider.rating == 5.0
    assert provider.city == "bangalore"
    assert provider.coordinates == Coordinates(12.9352, 77.6245)
    assert provider.origin is ProviderOrigin.GENERATED


def test_parse_candidate_payload_skips_malformed_contacts():
    batch = parse_candidate_payload(PAYLOAD)

    assert [provider.name for provider in batch.providers] == [
        "Koramangala Animal Clinic",
        "Lalbagh Bird Aid",
    ]
    assert batch.providers[1].urgency_tier is UrgencyTier.HIGH
    assert batch.guidance == ("Keep the animal warm", "Wear gloves", "Call immediately if bleeding")


@pytest.mark.parametrize("payload", [[], {"contacts": []}, {"emergencyContacts": "none"}])
def test_parse_candidate_payload_rejects_unusable_documents(payload):
    with pytest.raises(CandidateFetchFailed):
        parse_candidate_payload(payload)


@pytest.mark.asyncio
async def test_chat_completion_generator_posts_prompt_and_parses_reply():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            status_code=200,
            json={"choices": [{"message": {"content": json.dumps(PAYLOAD)}}]},
        )

    transport = httpx.MockTransport(handler)
    generator = ChatCompletionRecommendationGenerator(
        api_key="test-key",
        base_url="https://llm.example.com/v1/",
        client_factory=lambda: httpx.AsyncClient(transport=transport, timeout=5.0),
    )

    batch = await generator.fetch_candidates(_gps(), MatchCriteria("bird", UrgencyTier.CRITICAL))

    assert captured["url"] == "https://llm.example.com/v1/chat/completions"
    assert captured["auth"] == "Bearer test-key"
    assert captured["body"]["response_format"] == {"type": "json_object"}
    user_message = captured["body"]["messages"][1]["content"]
    assert "GPS Location: 12.9716, 77.5946" in user_message
    assert "Urgency: critical" in user_message
    assert len(batch.providers) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(status_code=500),
        httpx.Response(status_code=200, json={"choices": []}),
        httpx.Response(status_code=200, json={"choices": [{"message": {"content": "not json"}}]}),
    ],
)
async def test_chat_completion_generator_failures_raise_candidate_fetch_failed(response):
    transport = httpx.MockTransport(lambda request: response)
    generator = ChatCompletionRecommendationGenerator(
        api_key="test-key",
        client_factory=lambda: httpx.AsyncClient(transport=transport, timeout=5.0),
    )

    with pytest.raises(CandidateFetchFailed):
        await generator.fetch_candidates(_gps(), MatchCriteria())


@pytest.mark.asyncio
async def test_catalog_generator_uses_city_providers(catalog):
    generator = CatalogRecommendationGenerator(catalog)

    batch = await generator.fetch_candidates(_gps("Bengaluru"), MatchCriteria())

    assert {provider.city for provider in batch.providers} == {"bangalore"}


@pytest.mark.asyncio
async def test_catalog_generator_offers_whole_catalog_for_unlabeled_coordinates(catalog):
    generator = CatalogRecommendationGenerator(catalog)

    batch = await generator.fetch_candidates(_gps(None), MatchCriteria())

    assert len(batch.providers) == len(catalog.all_providers())


@pytest.mark.asyncio
async def test_catalog_generator_requires_a_position(catalog):
    generator = CatalogRecommendationGenerator(catalog)

    with pytest.raises(CandidateFetchFailed):
        await generator.fetch_candidates(None, MatchCriteria())


def test_build_generator_selects_backend(catalog):
    assert isinstance(build_generator(catalog, Settings()), CatalogRecommendationGenerator)
    configured = Settings(generator_backend="chat_completion", chat_completion_api_key="k")
    assert isinstance(build_generator(catalog, configured), ChatCompletionRecommendationGenerator)
    missing_key = Settings(generator_backend="chat_completion", chat_completion_api_key=None)
    assert isinstance(build_generator(catalog, missing_key), CatalogRecommendationGenerator)
