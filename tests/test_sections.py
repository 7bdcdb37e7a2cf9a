"""Tests for section create / update / delete / reorder.

Covers dense reordering by array position, last-writer-wins for plain
PATCHes, version conflicts for versioned PATCHes, and content validation
for student-details sections.
"""
import json

import pytest
from httpx import AsyncClient

from tests.conftest import create_record, list_sections


@pytest.mark.asyncio
async def test_create_section_appends_by_default(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers)
    resp = await client.post(
        f"/api/lab-records/{record['id']}/sections",
        json={"title": "Precautions", "content": "- Keep wires short"},
        headers=auth_headers,
    )
    assert resp.status_code == 201
    section = resp.json()
    assert section["order"] == 8
    assert section["sectionType"] == "text"
    assert section["version"] == 1
    assert section["labRecordId"] == record["id"]


@pytest.mark.asyncio
async def test_create_section_with_explicit_order(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers, template_type="computer")
    resp = await client.post(
        f"/api/lab-records/{record['id']}/sections",
        json={"title": "Listing", "sectionType": "code", "content": "print('hi')", "order": 42},
        headers=auth_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["order"] == 42


@pytest.mark.asyncio
async def test_patch_merges_fields(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers)
    aim = (await list_sections(client, auth_headers, record["id"]))[1]

    resp = await client.patch(
        f"/api/sections/{aim['id']}", json={"content": "To verify Ohm's law."}, headers=auth_headers
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["content"] == "To verify Ohm's law."
    assert data["title"] == "Aim"
    assert data["version"] == aim["version"] + 1


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["title", "content", "order", "isHidden", "sectionType"])
async def test_null_for_required_field_is_400(client: AsyncClient, auth_headers, field):
    record = await create_record(client, auth_headers)
    aim = (await list_sections(client, auth_headers, record["id"]))[1]

    resp = await client.patch(f"/api/sections/{aim['id']}", json={field: None}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid request data"

    unchanged = (await list_sections(client, auth_headers, record["id"]))[1]
    assert unchanged == aim


@pytest.mark.asyncio
async def test_null_version_means_unversioned(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers)
    aim = (await list_sections(client, auth_headers, record["id"]))[1]
    resp = await client.patch(
        f"/api/sections/{aim['id']}", json={"content": "x", "version": None}, headers=auth_headers
    )
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_unversioned_patches_last_writer_wins(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers)
    theory = (await list_sections(client, auth_headers, record["id"]))[3]

    first = await client.patch(f"/api/sections/{theory['id']}", json={"content": "first"}, headers=auth_headers)
    second = await client.patch(f"/api/sections/{theory['id']}", json={"content": "second"}, headers=auth_headers)
    assert first.status_code == second.status_code == 200

    sections = await list_sections(client, auth_headers, record["id"])
    assert sections[3]["content"] == "second"


@pytest.mark.asyncio
async def test_stale_version_is_409(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers)
    theory = (await list_sections(client, auth_headers, record["id"]))[3]
    seen = theory["version"]

    ok = await client.patch(
        f"/api/sections/{theory['id']}", json={"content": "tab one", "version": seen}, headers=auth_headers
    )
    assert ok.status_code == 200

    stale = await client.patch(
        f"/api/sections/{theory['id']}", json={"content": "tab two", "version": seen}, headers=auth_headers
    )
    assert stale.status_code == 409

    sections = await list_sections(client, auth_headers, record["id"])
    assert sections[3]["content"] == "tab one"


@pytest.mark.asyncio
async def test_student_details_must_be_json_object(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers)
    details = (await list_sections(client, auth_headers, record["id"]))[0]

    for bad in ("{not json", "[1, 2]", json.dumps({"name": 12})):
        resp = await client.patch(f"/api/sections/{details['id']}", json={"content": bad}, headers=auth_headers)
        assert resp.status_code == 400, bad

    good = json.dumps({"name": "Alice", "rollNo": "42", "class": "XII-B"})
    resp = await client.patch(f"/api/sections/{details['id']}", json={"content": good}, headers=auth_headers)
    assert resp.status_code == 200
    assert json.loads(resp.json()["content"])["rollNo"] == "42"


@pytest.mark.asyncio
async def test_changing_type_revalidates_existing_content(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers)
    aim = (await list_sections(client, auth_headers, record["id"]))[1]
    await client.patch(f"/api/sections/{aim['id']}", json={"content": "plain prose"}, headers=auth_headers)

    resp = await client.patch(
        f"/api/sections/{aim['id']}", json={"sectionType": "student_details"}, headers=auth_headers
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_reorder_sets_order_to_position(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers)
    sections = await list_sections(client, auth_headers, record["id"])
    reversed_ids = [s["id"] for s in reversed(sections)]

    resp = await client.post(
        f"/api/lab-records/{record['id']}/sections/reorder",
        json={"sectionOrders": [{"id": sid, "order": 99} for sid in reversed_ids]},
        headers=auth_headers,
    )
    assert resp.status_code == 204

    after = await list_sections(client, auth_headers, record["id"])
    assert [s["id"] for s in after] == reversed_ids
    assert [s["order"] for s in after] == list(range(8))


@pytest.mark.asyncio
async def test_partial_reorder_keeps_the_rest_after(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers)
    sections = await list_sections(client, auth_headers, record["id"])
    conclusion, aim = sections[7], sections[1]

    resp = await client.post(
        f"/api/lab-records/{record['id']}/sections/reorder",
        json={"sectionOrders": [{"id": conclusion["id"]}, {"id": aim["id"]}]},
        headers=auth_headers,
    )
    assert resp.status_code == 204

    titles = [s["title"] for s in await list_sections(client, auth_headers, record["id"])]
    assert titles == [
        "Conclusion", "Aim", "Student Details", "Apparatus",
        "Theory", "Procedure", "Observations", "Results",
    ]


@pytest.mark.asyncio
async def test_reorder_rejects_foreign_section(client: AsyncClient, auth_headers):
    first = await create_record(client, auth_headers)
    second = await create_record(client, auth_headers, title="Second")
    foreign = (await list_sections(client, auth_headers, second["id"]))[0]

    resp = await client.post(
        f"/api/lab-records/{first['id']}/sections/reorder",
        json={"sectionOrders": [{"id": foreign["id"], "order": 0}]},
        headers=auth_headers,
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_delete_section(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers)
    sections = await list_sections(client, auth_headers, record["id"])

    resp = await client.delete(f"/api/sections/{sections[2]['id']}", headers=auth_headers)
    assert resp.status_code == 204

    remaining = await list_sections(client, auth_headers, record["id"])
    assert "Apparatus" not in [s["title"] for s in remaining]
    assert len(remaining) == 7

    resp = await client.delete(f"/api/sections/{sections[2]['id']}", headers=auth_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_other_user_cannot_touch_sections(client: AsyncClient, auth_headers, other_auth_headers):
    record = await create_record(client, auth_headers)
    aim = (await list_sections(client, auth_headers, record["id"]))[1]

    resp = await client.patch(f"/api/sections/{aim['id']}", json={"content": "pwned"}, headers=other_auth_headers)
    assert resp.status_code == 404
    resp = await client.delete(f"/api/sections/{aim['id']}", headers=other_auth_headers)
    assert resp.status_code == 404
    resp = await client.post(
        f"/api/lab-records/{record['id']}/sections",
        json={"title": "Injected"},
        headers=other_auth_headers,
    )
    assert resp.status_code == 404
    resp = await client.post(
        f"/api/lab-records/{record['id']}/sections/reorder",
        json={"sectionOrders": []},
        headers=other_auth_headers,
    )
    assert resp.status_code == 404

    assert (await list_sections(client, auth_headers, record["id"]))[1]["content"] == ""
