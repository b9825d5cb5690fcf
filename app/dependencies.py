"""Centralized FastAPI dependencies for use with Depends()."""

from typing import Annotated

from fastapi import Depends

from app.config import Settings
from app.services.completion import StructuredCompletionClient
from app.services.gemini_client import InMemoryLLMClient, LLMClient

_llm_client: LLMClient = InMemoryLLMClient()


def init_production_deps(settings: Settings) -> None:
    """Swap the InMemory test double for the real Gemini client.

    Does nothing unless an API key or a GCP project is configured.  Uses a
    lazy import so the module loads without the SDK installed.
    """
    global _llm_client  # noqa: PLW0603

    if not settings.gemini_api_key and not settings.gcp_project:
        return

    from app.services.gemini_client import GeminiClient

    _llm_client = GeminiClient(
        settings.gemini_model,
        api_key=settings.gemini_api_key,
        project=settings.gcp_project,
        location=settings.gcp_location,
        temperature=settings.gemini_temperature,
    )


def get_llm_client() -> LLMClient:
    """Return the application LLM client instance.

    Defaults to InMemoryLLMClient for development and testing.
    Swapped to the Gemini implementation by ``init_production_deps()``.
    """
    return _llm_client


def get_completion_client(
    llm_client: Annotated[LLMClient, Depends(get_llm_client)],
) -> StructuredCompletionClient:
    """Return a structured completion client bound to the application LLM client."""
    return StructuredCompletionClient(llm_client)


__all__ = [
    "get_completion_client",
    "get_llm_client",
    "init_production_deps",
]
