from __future__ import annotations

from soapscribe.core.settings import get_settings
from soapscribe.generation.client import GenerationClient, GenerationConfig


def get_generation_client() -> GenerationClient | None:
    """
    Dependency provider for GenerationClient.

    Returns None when no service URL is configured so routes can answer 503 instead of
    failing during dependency resolution.
    """

    settings = get_settings()
    if not settings.generation_base_url:
        return None

    config = GenerationConfig(
        base_url=settings.generation_base_url,
        api_key=settings.generation_api_key,
        timeout_seconds=float(settings.generation_timeout_seconds),
        transcribe_path=settings.generation_transcribe_path,
        suggest_path=settings.generation_suggest_path,
    )
    return GenerationClient(config=config)
