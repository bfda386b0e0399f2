"""Route group exports."""

from . import health, location, providers, recommendations

__all__ = ["health", "location", "providers", "recommendations"]
