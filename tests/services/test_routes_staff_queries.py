"""Staff and query routes over HTTP.

Tests cover:
    - Staff list/search, primary get/set/unset, duplicate email, WhatsApp phone registrations
    - Structured, flexible and raw SQL query endpoints plus the schema description
"""

from tests.services.conftest import ORG_ID, STAFF_PHONE


# -- Staff ---------------------------------------------------------------------


async def test_list_staff(client, seed, org_headers):
    response = await client.get(
        "/api/v1/staff", params={"order_by": "first_name", "order_direction": "asc"},
        headers=org_headers,
    )
    body = response.json()
    assert body["total_count"] == 2
    assert [s["first_name"] for s in body["staff"]] == ["Pat", "Sam"]


async def test_search_staff(client, seed, org_headers):
    response = await client.get(
        "/api/v1/staff", params={"search_term": "rivera"}, headers=org_headers,
    )
    assert [s["id"] for s in response.json()["staff"]] == [seed.staff.id]


async def test_create_staff_duplicate_email(client, seed, org_headers):
    response = await client.post("/api/v1/staff", json={
        "first_name": "Sam", "last_name": "Two", "email": "SAM@hope.example.org",
    }, headers=org_headers)
    assert response.status_code == 409


async def test_primary_staff_moves(client, seed, org_headers):
    response = await client.get("/api/v1/staff/primary", headers=org_headers)
    assert response.json()["id"] == seed.primary_staff.id

    response = await client.put(f"/api/v1/staff/{seed.staff.id}/primary", headers=org_headers)
    assert response.json()["is_primary"] is True

    response = await client.get("/api/v1/staff/primary", headers=org_headers)
    assert response.json()["id"] == seed.staff.id
    previous = await client.get(f"/api/v1/staff/{seed.primary_staff.id}", headers=org_headers)
    assert previous.json()["is_primary"] is False


async def test_unset_primary(client, seed, org_headers):
    response = await client.delete(
        f"/api/v1/staff/{seed.primary_staff.id}/primary", headers=org_headers,
    )
    assert response.json()["is_primary"] is False
    response = await client.get("/api/v1/staff/primary", headers=org_headers)
    assert response.json() is None


async def test_foreign_staff_not_found(client, seed, org_headers):
    response = await client.get(f"/api/v1/staff/{seed.other_staff.id}", headers=org_headers)
    assert response.status_code == 404


async def test_phone_number_registration(client, seed, org_headers):
    url = f"/api/v1/staff/{seed.primary_staff.id}/phone-numbers"
    response = await client.post(url, json={"phone_number": "(555) 222-3333"}, headers=org_headers)
    assert response.status_code == 201
    assert response.json()["phone_number"] == "+15552223333"
    assert response.json()["is_allowed"] is True

    response = await client.patch(
        f"{url}/+15552223333", json={"is_allowed": False}, headers=org_headers,
    )
    assert response.json()["is_allowed"] is False

    response = await client.get(url, headers=org_headers)
    assert [p["phone_number"] for p in response.json()] == ["+15552223333"]

    response = await client.delete(f"{url}/+15552223333", headers=org_headers)
    assert response.status_code == 204
    assert (await client.get(url, headers=org_headers)).json() == []


async def test_phone_number_already_registered(client, seed, org_headers):
    response = await client.post(
        f"/api/v1/staff/{seed.primary_staff.id}/phone-numbers",
        json={"phone_number": STAFF_PHONE},
        headers=org_headers,
    )
    assert response.status_code == 409


# -- Queries -------------------------------------------------------------------


async def test_structured_query(client, seed, org_headers):
    response = await client.post("/api/v1/queries/structured", json={
        "queryType": "findDonors",
        "filters": [{"field": "highPotentialDonor", "operation": "equals", "value": True}],
    }, headers=org_headers)
    body = response.json()
    assert body["count"] == 1
    assert body["rows"][0]["id"] == seed.couple.id


async def test_structured_query_unknown_type(client, seed, org_headers):
    response = await client.post(
        "/api/v1/queries/structured", json={"queryType": "nope"}, headers=org_headers,
    )
    assert response.status_code == 400


async def test_flexible_query(client, seed, org_headers):
    response = await client.post("/api/v1/queries/flexible", json={
        "queryType": "custom-donor-search", "state": "ca",
    }, headers=org_headers)
    assert [r["id"] for r in response.json()["rows"]] == [seed.ana.id]


async def test_flexible_query_missing_donor(client, seed, org_headers):
    response = await client.post(
        "/api/v1/queries/flexible", json={"queryType": "donor-project-history"},
        headers=org_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_raw_sql(client, seed, org_headers):
    response = await client.post("/api/v1/queries/sql", json={
        "query": f"SELECT name FROM projects WHERE organization_id = '{ORG_ID}' ORDER BY name",
    }, headers=org_headers)
    body = response.json()
    assert body["success"] is True
    assert [r["name"] for r in body["data"]] == ["Clean Water", "School Books"]


async def test_raw_sql_rejection_is_200_with_error(client, seed, org_headers):
    response = await client.post(
        "/api/v1/queries/sql", json={"query": "TRUNCATE donors"}, headers=org_headers,
    )
    assert response.status_code == 200
    assert response.json()["error"]["type"] == "security"


async def test_schema(client, seed, org_headers):
    response = await client.get("/api/v1/queries/schema", headers=org_headers)
    assert "TABLE projects" in response.json()["schema"]
