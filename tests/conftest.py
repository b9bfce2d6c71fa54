"""Pytest configuration and fixtures for claimflow.

Engine tests run against in-memory repositories (tests.fakes); HTTP tests
use claimflow.main:app with get_flow_repositories overridden, so no
database is needed. Postgres-backed tests use db_session and skip without
DATABASE_URL.
"""

import copy
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.api.v1.dependencies import (
    FlowRepositories,
    get_flow_repositories,
    get_language_model,
)
from claimflow.infrastructure.persistence import database
from claimflow.main import app
from tests.fakes import (
    FakeClaimMediaRepository,
    FakeFlowDefinitionRepository,
    FakeFlowInstanceRepository,
    FakeGateEvaluationRepository,
    FakeMovementCompletionRepository,
    FakeMovementEvidenceRepository,
    FlowEngine,
)

TENANT_ID = "tenant-1"
OTHER_TENANT_ID = "tenant-2"
CLAIM_ID = "claim-1"

# Phase p1: required A and B, optional C; blocking gate g1 into p2.
WATER_FLOW_JSON: dict[str, Any] = {
    "schema_version": "1.0",
    "metadata": {
        "name": "Water damage inspection",
        "primary_peril": "water",
        "secondary_perils": ["mold"],
        "estimated_duration_minutes": 90,
    },
    "phases": [
        {
            "id": "p1",
            "name": "Exterior",
            "sequence_order": 1,
            "movements": [
                {
                    "id": "A",
                    "name": "Front elevation",
                    "sequence_order": 1,
                    "is_required": True,
                    "criticality": "high",
                    "guidance": {"instruction": "Photograph the front", "tts_text": "Front"},
                    "evidence_requirements": [
                        {"type": "photo", "is_required": True, "quantity_min": 2, "quantity_max": 5}
                    ],
                },
                {
                    "id": "B",
                    "name": "Water entry point",
                    "sequence_order": 2,
                    "is_required": True,
                    "guidance": {"instruction": "Find the source", "tts_text": "Source"},
                },
                {
                    "id": "C",
                    "name": "Gutters",
                    "sequence_order": 3,
                    "is_required": False,
                    "guidance": {"instruction": "Check gutters", "tts_text": "Gutters"},
                },
            ],
        },
        {
            "id": "p2",
            "name": "Interior",
            "sequence_order": 2,
            "movements": [
                {
                    "id": "D",
                    "name": "Ceiling stains - {room}",
                    "sequence_order": 1,
                    "is_required": True,
                    "guidance": {"instruction": "Document stains in {room}", "tts_text": "Stains"},
                    "evidence_requirements": [{"type": "photo", "quantity_min": 1}],
                }
            ],
        },
    ],
    "gates": [
        {
            "id": "g1",
            "name": "Exterior complete",
            "from_phase": "p1",
            "to_phase": "p2",
            "gate_type": "blocking",
            "evaluation_criteria": {
                "type": "simple",
                "simple_rules": {"condition": "all_required_movements_complete"},
            },
        }
    ],
}


@pytest.fixture
def flow_json() -> dict[str, Any]:
    return copy.deepcopy(WATER_FLOW_JSON)


@pytest.fixture
def repos() -> FlowRepositories:
    return FlowRepositories(
        definitions=FakeFlowDefinitionRepository(),
        instances=FakeFlowInstanceRepository(),
        completions=FakeMovementCompletionRepository(),
        evidence=FakeMovementEvidenceRepository(),
        media=FakeClaimMediaRepository(),
        gate_evaluations=FakeGateEvaluationRepository(),
    )


@pytest.fixture
def water_definition(repos: FlowRepositories, flow_json: dict[str, Any]):
    return repos.definitions.add(
        TENANT_ID, "water_residential", flow_json, perils=["water"], name="Water damage"
    )


@pytest.fixture
def engine(repos: FlowRepositories) -> FlowEngine:
    return FlowEngine(repos)


@pytest.fixture
async def instance(engine: FlowEngine, water_definition):
    """Active instance of the water flow for CLAIM_ID, on phase p1."""
    created, _ = await engine.lifecycle.start_flow_for_claim(TENANT_ID, CLAIM_ID, "water")
    return created


@pytest.fixture
async def client(repos: FlowRepositories) -> AsyncClient:
    """Async HTTP client against the FastAPI app with in-memory repositories."""
    app.dependency_overrides[get_flow_repositories] = lambda: repos
    app.dependency_overrides[get_language_model] = lambda: None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def tenant_headers() -> dict[str, str]:
    return {"X-Tenant-ID": TENANT_ID}


@pytest.fixture
async def db_session() -> AsyncSession:
    """Database session for repository tests. Rolls back after test.

    Skips when DATABASE_URL is not configured. Run migrations first:
    alembic upgrade head.
    """
    database._ensure_engine()
    if database.AsyncSessionLocal is None:
        pytest.skip("Postgres not configured: set DATABASE_URL, then run: alembic upgrade head")
    async with database.AsyncSessionLocal() as session:
        yield session
        await session.rollback()
