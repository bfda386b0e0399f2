"""Recommendation caching and candidate generation."""

from .cache import (
    RecommendationCache,
    ResolvedPosition,
    build_position_source,
    build_recommendation_cache,
    make_criteria,
)
from .generator import (
    CandidateBatch,
    CatalogRecommendationGenerator,
    ChatCompletionRecommendationGenerator,
    RecommendationGenerator,
    build_generator,
    parse_candidate_payload,
)

__all__ = [
    "RecommendationCache",
    "ResolvedPosition",
    "build_position_source",
    "build_recommendation_cache",
    "make_criteria",
    "CandidateBatch",
    "CatalogRecommendationGenerator",
    "ChatCompletionRecommendationGenerator",
    "RecommendationGenerator",
    "build_generator",
    "parse_candidate_payload",
]
