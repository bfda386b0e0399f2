#!/usr/bin/env python3
"""Helper script to check and create the .env file for the rescue locator service."""

from pathlib import Path
import os

TEMPLATE = """# API Configuration
RESCUE_API_PREFIX=/api
RESCUE_LOG_LEVEL=INFO
# RESCUE_FRONTEND_ALLOWED_ORIGINS - JSON array or comma-separated list

# Cache behaviour
RESCUE_CACHE_TTL_MINUTES=30
RESCUE_DRIFT_THRESHOLD_KM=5
RESCUE_MAX_DISTANCE_KM=50

# Fixed position for kiosk or dispatcher deployments (leave empty for device reports)
# RESCUE_STATIC_LATITUDE=19.0760
# RESCUE_STATIC_LONGITUDE=72.8777

# Candidate source: catalog or chat_completion
RESCUE_GENERATOR_BACKEND=catalog
# RESCUE_CHAT_COMPLETION_API_KEY=your-api-key-here
"""


def _mask(value: str) -> str:
    return value[:6] + "..." + value[-4:] if len(value) > 12 else value


def main():
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Rescue Locator Environment Checker")
    print("=" * 60)
    print()

    if not env_file.exists():
        print(f".env file NOT found at: {env_file}; creating a template")
        env_file.write_text(TEMPLATE, encoding="utf-8")
        print(f"Created .env file at: {env_file}")
        print()
    else:
        print(f"Found .env file at: {env_file}")
        print()

    api_key = os.getenv("RESCUE_CHAT_COMPLETION_API_KEY")
    if api_key:
        print(f"RESCUE_CHAT_COMPLETION_API_KEY (from environment): {_mask(api_key)}")
    else:
        print("RESCUE_CHAT_COMPLETION_API_KEY not set in environment")
    print()

    print("Testing config loading...")
    print()
    try:
        import sys
        sys.path.insert(0, str(project_root / "src"))
        from rescue_locator.config import settings
        from rescue_locator.data.catalog_repository import load_catalog

        catalog = load_catalog(settings.catalog_file)
        print(f"Catalog: {settings.catalog_file} ({len(catalog.all_providers())} providers)")
        print(f"Generator backend: {settings.generator_backend}")
        if settings.generator_backend == "chat_completion" and not settings.chat_completion_api_key:
            print("WARNING: chat_completion backend selected without an API key; the catalog will be used")
        if settings.has_static_position:
            print(f"Static position: {settings.static_latitude}, {settings.static_longitude}")
        else:
            print("Position source: device reports via POST /location/fix")
        print(f"Cache TTL: {settings.cache_ttl_minutes} min, drift threshold: {settings.drift_threshold_km} km")
    except Exception as e:
        print(f"Error loading config: {e}")
        print()
        print("Make sure you're running this from the project root directory")


if __name__ == "__main__":
    main()
