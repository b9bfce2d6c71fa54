"""Flow definition endpoints against in-memory repositories."""

import copy

from httpx import AsyncClient

from tests.conftest import OTHER_TENANT_ID, WATER_FLOW_JSON


def _body(**overrides) -> dict:
    body = {
        "flow_key": "Water Residential",
        "name": "Water damage",
        "flow_json": copy.deepcopy(WATER_FLOW_JSON),
        "perils": ["water"],
    }
    body.update(overrides)
    return body


async def test_missing_tenant_header_returns_400(client: AsyncClient) -> None:
    """Tenant-scoped routes reject requests without X-Tenant-ID."""
    response = await client.get("/api/v1/flow-definitions")
    assert response.status_code == 400
    assert "X-Tenant-ID" in response.json()["message"]


async def test_invalid_tenant_header_returns_400(client: AsyncClient) -> None:
    response = await client.get("/api/v1/flow-definitions", headers={"X-Tenant-ID": "bad tenant!"})
    assert response.status_code == 400


async def test_create_and_get_definition(client: AsyncClient, tenant_headers: dict) -> None:
    """POST creates version 1 with a slugified key; GET returns it."""
    response = await client.post("/api/v1/flow-definitions", json=_body(), headers=tenant_headers)
    assert response.status_code == 201
    created = response.json()
    assert created["flow_key"] == "water_residential"
    assert created["version"] == 1
    assert created["is_system"] is False

    response = await client.get(f"/api/v1/flow-definitions/{created['id']}", headers=tenant_headers)
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]


async def test_create_invalid_flow_json_returns_422(client: AsyncClient, tenant_headers: dict) -> None:
    """Semantic flow_json errors come back as FLOW_DEFINITION_INVALID with the error list."""
    flow_json = copy.deepcopy(WATER_FLOW_JSON)
    flow_json["gates"][0]["to_phase"] = "p9"
    response = await client.post(
        "/api/v1/flow-definitions", json=_body(flow_json=flow_json), headers=tenant_headers
    )
    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "FLOW_DEFINITION_INVALID"
    assert data["details"]["errors"]


async def test_create_missing_fields_returns_422(client: AsyncClient, tenant_headers: dict) -> None:
    response = await client.post("/api/v1/flow-definitions", json={}, headers=tenant_headers)
    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"


async def test_definition_invisible_to_other_tenant(client: AsyncClient, tenant_headers: dict) -> None:
    created = (
        await client.post("/api/v1/flow-definitions", json=_body(), headers=tenant_headers)
    ).json()
    response = await client.get(
        f"/api/v1/flow-definitions/{created['id']}",
        headers={"X-Tenant-ID": OTHER_TENANT_ID, "X-Request-ID": "req-404"},
    )
    assert response.status_code == 404
    assert response.json()["error"] == "RESOURCE_NOT_FOUND"
    assert response.json()["request_id"] == "req-404"


async def test_template_and_validate(client: AsyncClient, tenant_headers: dict) -> None:
    """The empty template validates; a non-object flow_json does not."""
    template = (await client.get("/api/v1/flow-definitions/template", headers=tenant_headers)).json()
    response = await client.post(
        "/api/v1/flow-definitions/validate", json={"flow_json": template}, headers=tenant_headers
    )
    assert response.status_code == 200
    assert response.json()["is_valid"] is True

    response = await client.post(
        "/api/v1/flow-definitions/validate", json={"flow_json": [1, 2]}, headers=tenant_headers
    )
    assert response.json()["is_valid"] is False
    assert response.json()["errors"]


async def test_update_flow_json_creates_version(client: AsyncClient, tenant_headers: dict) -> None:
    created = (
        await client.post("/api/v1/flow-definitions", json=_body(), headers=tenant_headers)
    ).json()
    flow_json = copy.deepcopy(WATER_FLOW_JSON)
    flow_json["phases"][1]["name"] = "Inside"
    response = await client.put(
        f"/api/v1/flow-definitions/{created['id']}",
        json={"flow_json": flow_json},
        headers=tenant_headers,
    )
    assert response.status_code == 200
    assert response.json()["version"] == 2
    assert response.json()["id"] != created["id"]


async def test_duplicate_toggle_and_delete(client: AsyncClient, tenant_headers: dict) -> None:
    created = (
        await client.post("/api/v1/flow-definitions", json=_body(), headers=tenant_headers)
    ).json()
    response = await client.post(
        f"/api/v1/flow-definitions/{created['id']}/duplicate",
        json={"new_name": "Water copy"},
        headers=tenant_headers,
    )
    assert response.status_code == 201
    duplicate = response.json()
    assert duplicate["flow_key"] == "water_copy"
    assert duplicate["is_active"] is False

    response = await client.patch(
        f"/api/v1/flow-definitions/{duplicate['id']}/activate", headers=tenant_headers
    )
    assert response.json()["is_active"] is True

    response = await client.delete(f"/api/v1/flow-definitions/{duplicate['id']}", headers=tenant_headers)
    assert response.status_code == 204
    response = await client.get(f"/api/v1/flow-definitions/{duplicate['id']}", headers=tenant_headers)
    assert response.status_code == 404


async def test_delete_in_use_returns_409(client: AsyncClient, tenant_headers: dict) -> None:
    created = (
        await client.post("/api/v1/flow-definitions", json=_body(), headers=tenant_headers)
    ).json()
    await client.post(
        "/api/v1/claims/claim-1/flows", json={"peril_type": "water"}, headers=tenant_headers
    )
    response = await client.delete(f"/api/v1/flow-definitions/{created['id']}", headers=tenant_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "FLOW_DEFINITION_IN_USE"
