"""Shared test fixtures for the FastAPI test client and LLM test double."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from app.dependencies import get_llm_client
from app.main import app
from app.services.gemini_client import InMemoryLLMClient


@pytest.fixture
def anyio_backend() -> str:
    """Run anyio-marked tests on asyncio only."""
    return "asyncio"


@pytest.fixture
def mock_gemini_client() -> InMemoryLLMClient:
    """Create a fresh in-memory LLM client for test inspection."""
    return InMemoryLLMClient()


@pytest.fixture
def field_context() -> dict:
    """A camelCase field context as sent by the form front end."""
    return {
        "label": "Loan Amount",
        "type": "currency",
        "section": "Loan Terms",
        "currentValue": None,
    }


@pytest.fixture
def project_context() -> dict:
    """A camelCase project context as sent by the form front end."""
    return {
        "projectName": "Riverside Apartments",
        "assetType": "Multifamily",
        "projectPhase": "Acquisition",
        "loanAmountRequested": 5000000,
        "targetLtvPercent": 70,
        "propertyAddressCity": "Austin",
        "propertyAddressState": "TX",
    }


@pytest.fixture
async def client(
    mock_gemini_client: InMemoryLLMClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx AsyncClient with the LLM client overridden.

    Uses an in-memory LLM client so tests control the streamed response and
    can inspect the prompts that were sent.
    """
    app.dependency_overrides[get_llm_client] = lambda: mock_gemini_client
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
