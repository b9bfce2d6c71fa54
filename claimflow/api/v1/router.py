"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from claimflow.api.v1.dependencies (no manual repo/service construction).
"""

from fastapi import APIRouter

from claimflow.api.v1.endpoints import claim_flows, flow_definitions, flows, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(
    flow_definitions.router, prefix="/flow-definitions", tags=["flow-definitions"]
)
api_router.include_router(claim_flows.router, prefix="/claims", tags=["claim-flows"])
api_router.include_router(flows.router, prefix="/flows", tags=["flows"])
