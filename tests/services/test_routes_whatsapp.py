"""WhatsApp routes — tool calls and inbound messages from registered staff phones.

Tests cover:
    - Tool catalogue listing
    - Tool calls resolve the organization from the sender phone
    - Unregistered sender → 403; disabled sender → 403 with a permission_denied activity row
    - Inbound messages stored once; retries inside the window answered as duplicates
    - History, activity and history clearing endpoints
"""

from tests.services.conftest import STAFF_PHONE


async def test_list_tools(client):
    response = await client.get("/api/v1/whatsapp/tools")
    names = {tool["name"] for tool in response.json()["tools"]}
    assert {"find_donors_by_name", "execute_sql", "add_donor_note"} <= names


async def test_tool_call_uses_sender_organization(client, seed):
    response = await client.post("/api/v1/whatsapp/tools/find_donors_by_name", json={
        "phone_number": "(555) 123-4567", "input": {"name": "ana"},
    })
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert [d["id"] for d in body["donors"]] == [seed.ana.id]


async def test_tool_error_is_a_result(client, seed):
    response = await client.post("/api/v1/whatsapp/tools/get_donor_details", json={
        "phone_number": STAFF_PHONE, "input": {"donorId": seed.other_donor.id},
    })
    assert response.status_code == 200
    assert response.json()["error_code"] == "RESOURCE_NOT_FOUND"


async def test_unregistered_sender(client, seed):
    response = await client.post("/api/v1/whatsapp/tools/get_donor_statistics", json={
        "phone_number": "+15550009999",
    })
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


async def test_disabled_sender_is_logged(client, seed, org_headers):
    await client.patch(
        f"/api/v1/staff/{seed.staff.id}/phone-numbers/{STAFF_PHONE}",
        json={"is_allowed": False},
        headers=org_headers,
    )
    response = await client.post("/api/v1/whatsapp/messages", json={
        "phone_number": STAFF_PHONE, "message": "Hi",
    })
    assert response.status_code == 403

    activity = (await client.get("/api/v1/whatsapp/activity", headers=org_headers)).json()
    assert [a["activity_type"] for a in activity] == ["permission_denied"]


async def test_message_deduplication(client, seed, org_headers):
    payload = {"phone_number": STAFF_PHONE, "message": "Who gave most?", "message_id": "wamid.1"}
    first = await client.post("/api/v1/whatsapp/messages", json=payload)
    assert first.json()["duplicate"] is False
    assert first.json()["message_id"] is not None

    retry = await client.post("/api/v1/whatsapp/messages", json={
        **payload, "message": "  who gave MOST? ",
    })
    assert retry.json() == {"duplicate": True, "message_id": None}

    history = (await client.get(
        "/api/v1/whatsapp/history", params={"phone_number": STAFF_PHONE}, headers=org_headers,
    )).json()
    assert [m["content"] for m in history] == ["Who gave most?"]
    assert history[0]["role"] == "user"

    activity = (await client.get("/api/v1/whatsapp/activity", headers=org_headers)).json()
    assert [a["activity_type"] for a in activity] == ["duplicate_ignored", "message_received"]


async def test_clear_history(client, seed, org_headers):
    await client.post("/api/v1/whatsapp/messages", json={
        "phone_number": STAFF_PHONE, "message": "Hello",
    })
    response = await client.delete(
        "/api/v1/whatsapp/history",
        params={"phone_number": "+1 555 123 4567", "staff_id": seed.staff.id},
        headers=org_headers,
    )
    assert response.status_code == 204
    history = await client.get(
        "/api/v1/whatsapp/history", params={"phone_number": STAFF_PHONE}, headers=org_headers,
    )
    assert history.json() == []


async def test_tool_call_is_recorded(client, seed, org_headers):
    await client.post("/api/v1/whatsapp/tools/add_donor_note", json={
        "phone_number": STAFF_PHONE,
        "input": {"donorId": seed.ana.id, "content": "Wants a site visit"},
    })
    activity = (await client.get(
        "/api/v1/whatsapp/activity", params={"staff_id": seed.staff.id}, headers=org_headers,
    )).json()
    assert activity[0]["activity_type"] == "donor_note_added"
    assert activity[0]["data"]["tool"] == "add_donor_note"

    donor = (await client.get(f"/api/v1/donors/{seed.ana.id}", headers=org_headers)).json()
    assert donor["notes"][0]["content"] == "Wants a site visit"
