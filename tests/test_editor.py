"""Tests for the editor client: local state, reconciliation and auto-save.

The API client talks to the real application through the test transport.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient

from app.client.api_client import ApiError, LabRecordApiClient
from app.client.editor import EditorStore, SaveStatus
from tests.conftest import PASSWORD


@pytest_asyncio.fixture
async def api(client: AsyncClient) -> LabRecordApiClient:
    api = LabRecordApiClient(client)
    await api.register("dana@example.com", PASSWORD, "Dana", "Diaz")
    return api


@pytest.mark.asyncio
async def test_create_opens_seeded_session(api: LabRecordApiClient):
    store = EditorStore(api, debounce_seconds=60)
    session = await store.create("Ohm's Law", "physics")

    assert session.record_id in store
    assert session.title == "Ohm's Law"
    assert [s.order for s in session.sections] == list(range(8))
    assert session.active_section_id == session.sections[0].id
    assert session.status == SaveStatus.SAVED
    assert await store.open(session.record_id) is session


@pytest.mark.asyncio
async def test_add_section_appends_and_selects(api: LabRecordApiClient):
    store = EditorStore(api, debounce_seconds=60)
    session = await store.create("Sorting", "computer")

    created = await session.add_section()
    assert created.title == "New Section"
    assert created.order == 6
    assert session.active_section_id == created.id
    assert len(await api.list_sections(session.record_id)) == 7


@pytest.mark.asyncio
async def test_manual_flush_writes_sections_and_title(api: LabRecordApiClient):
    store = EditorStore(api, debounce_seconds=60)
    session = await store.create("Draft", "physics")
    aim = session.sections[1]

    session.update_section(aim.id, content="To verify Ohm's law.")
    session.set_title("Ohm's Law")
    assert session.status == SaveStatus.UNSAVED

    await session.flush()
    assert session.status == SaveStatus.SAVED

    server_sections = await api.list_sections(session.record_id)
    assert server_sections[1].content == "To verify Ohm's law."
    assert (await api.get_lab_record(session.record_id)).title == "Ohm's Law"
    # Local copy replaced by the server's answer
    assert session.section(aim.id).version == server_sections[1].version


@pytest.mark.asyncio
async def test_debounced_autosave_keeps_last_edit(api: LabRecordApiClient):
    store = EditorStore(api, debounce_seconds=0.05)
    session = await store.create("Debounce", "physics")
    theory = session.sections[3]

    session.update_section(theory.id, content="first draft")
    session.update_section(theory.id, content="second draft")
    assert session.status == SaveStatus.UNSAVED

    await session.wait_idle()
    assert session.status == SaveStatus.SAVED
    assert (await api.list_sections(session.record_id))[3].content == "second draft"


@pytest.mark.asyncio
async def test_delete_active_section_selects_first(api: LabRecordApiClient):
    store = EditorStore(api, debounce_seconds=60)
    session = await store.create("Delete", "physics")
    first = session.sections[0]
    procedure = session.sections[4]
    session.select_section(procedure.id)

    await session.delete_section(procedure.id)
    assert session.active_section_id == first.id
    assert session.section(procedure.id) is None
    assert len(await api.list_sections(session.record_id)) == 7


@pytest.mark.asyncio
async def test_move_section_renumbers_by_position(api: LabRecordApiClient):
    store = EditorStore(api, debounce_seconds=60)
    session = await store.create("Move", "physics")

    session.move_section(7, 0)
    assert [s.title for s in session.sections][:2] == ["Conclusion", "Student Details"]
    assert [s.order for s in session.sections] == list(range(8))

    await session.flush()
    server = await api.list_sections(session.record_id)
    assert [s.title for s in server][:2] == ["Conclusion", "Student Details"]


@pytest.mark.asyncio
async def test_reorder_needs_every_section(api: LabRecordApiClient):
    store = EditorStore(api, debounce_seconds=60)
    session = await store.create("Reorder", "computer")
    ids = [s.id for s in session.sections]

    with pytest.raises(ValueError):
        session.reorder(ids[:2])

    session.reorder(list(reversed(ids)))
    assert [s.id for s in session.sections] == list(reversed(ids))
    await store.close_all()
    assert [s.id for s in await api.list_sections(session.record_id)] == list(reversed(ids))


@pytest.mark.asyncio
async def test_update_rejects_unknown_field(api: LabRecordApiClient):
    store = EditorStore(api, debounce_seconds=60)
    session = await store.create("Fields", "physics")
    with pytest.raises(ValueError):
        session.update_section(session.sections[0].id, lab_record_id="elsewhere")
    with pytest.raises(KeyError):
        session.update_section("no-such-section", content="x")


@pytest.mark.asyncio
async def test_api_errors_surface(api: LabRecordApiClient):
    store = EditorStore(api, debounce_seconds=60)
    with pytest.raises(ApiError) as excinfo:
        await store.open("00000000-0000-0000-0000-000000000000")
    assert excinfo.value.status_code == 404
    assert excinfo.value.detail == "Lab record not found"


@pytest.mark.asyncio
async def test_failed_flush_leaves_session_unsaved(api: LabRecordApiClient):
    store = EditorStore(api, debounce_seconds=60)
    session = await store.create("Broken", "physics")
    details = session.sections[0]

    session.update_section(details.id, content="{not json")
    with pytest.raises(ApiError) as excinfo:
        await session.flush()
    assert excinfo.value.status_code == 400
    assert session.status == SaveStatus.UNSAVED
    assert session.last_error is excinfo.value
