"""
Client-side editor state with debounced auto-save.

One ``EditorSession`` per open lab record, held by an ``EditorStore``
keyed by record id. Local edits mark the session ``unsaved`` and restart a
debounce timer; when it fires, ``flush()`` writes every section and the
record title back through ``LabRecordApiClient``. Server responses replace
the local copies unless the section was edited again while the save was
in flight.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from app.client.api_client import LabRecordApiClient
from app.config import settings
from app.models.schemas import SectionResponse

logger = logging.getLogger(__name__)


class SaveStatus(str, Enum):
    SAVED = "saved"
    SAVING = "saving"
    UNSAVED = "unsaved"


_EDITABLE_FIELDS = {"title", "content", "order", "is_hidden"}


class EditorSession:
    """Editing state of a single lab record."""

    def __init__(
        self,
        api: LabRecordApiClient,
        record_id: str,
        debounce_seconds: Optional[float] = None,
    ) -> None:
        self.api = api
        self.record_id = record_id
        self.title = ""
        self.sections: List[SectionResponse] = []
        self.active_section_id: Optional[str] = None
        self.status = SaveStatus.SAVED
        self.last_error: Optional[Exception] = None
        self.debounce_seconds = (
            settings.AUTOSAVE_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )

        self._dirty_sections: Set[str] = set()
        self._title_dirty = False
        self._timer: Optional[asyncio.Task] = None
        self._save_task: Optional[asyncio.Task] = None
        self._flush_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> "EditorSession":
        """Fetch the record and its sections, replacing local state."""
        record = await self.api.get_lab_record(self.record_id)
        sections = await self.api.list_sections(self.record_id)
        self.title = record.title
        self.sections = sorted(sections, key=lambda s: s.order)
        self.active_section_id = self.sections[0].id if self.sections else None
        self._dirty_sections.clear()
        self._title_dirty = False
        self.status = SaveStatus.SAVED
        return self

    # ------------------------------------------------------------------
    # Local edits
    # ------------------------------------------------------------------

    def section(self, section_id: str) -> Optional[SectionResponse]:
        for s in self.sections:
            if s.id == section_id:
                return s
        return None

    @property
    def active_section(self) -> Optional[SectionResponse]:
        if self.active_section_id is None:
            return None
        return self.section(self.active_section_id)

    def select_section(self, section_id: Optional[str]) -> None:
        if section_id is not None and self.section(section_id) is None:
            raise KeyError(section_id)
        self.active_section_id = section_id

    async def add_section(self, title: str = "New Section", section_type: str = "text") -> SectionResponse:
        """Create a section at the end of the list and select it."""
        created = await self.api.create_section(
            self.record_id,
            title=title,
            content="",
            order=len(self.sections),
            section_type=section_type,
        )
        self.sections.append(created)
        self.active_section_id = created.id
        return created

    def update_section(self, section_id: str, **fields: Any) -> SectionResponse:
        """Merge *fields* into the local copy and schedule a save."""
        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot edit section fields: {sorted(unknown)}")
        for index, s in enumerate(self.sections):
            if s.id == section_id:
                updated = s.model_copy(update=fields)
                self.sections[index] = updated
                self._dirty_sections.add(section_id)
                self._mark_unsaved()
                return updated
        raise KeyError(section_id)

    async def delete_section(self, section_id: str) -> None:
        """Delete server-side, then drop locally and fix up the selection."""
        if self.section(section_id) is None:
            raise KeyError(section_id)
        await self.api.delete_section(section_id)
        self.sections = [s for s in self.sections if s.id != section_id]
        self._dirty_sections.discard(section_id)
        if self.active_section_id == section_id:
            self.active_section_id = self.sections[0].id if self.sections else None

    def move_section(self, old_index: int, new_index: int) -> None:
        """Drag-and-drop move; every order is recomputed from position."""
        sections = list(self.sections)
        moved = sections.pop(old_index)
        sections.insert(new_index, moved)
        self._renumber(sections)

    def reorder(self, section_ids: List[str]) -> None:
        """Put the sections in the order of *section_ids*."""
        by_id = {s.id: s for s in self.sections}
        if sorted(section_ids) != sorted(by_id):
            raise ValueError("reorder needs every section id exactly once")
        self._renumber([by_id[sid] for sid in section_ids])

    def set_title(self, title: str) -> None:
        self.title = title
        self._title_dirty = True
        self._mark_unsaved()

    def _renumber(self, sections: List[SectionResponse]) -> None:
        renumbered = []
        for position, s in enumerate(sections):
            if s.order != position:
                s = s.model_copy(update={"order": position})
                self._dirty_sections.add(s.id)
            renumbered.append(s)
        self.sections = renumbered
        self._mark_unsaved()

    # ------------------------------------------------------------------
    # Auto-save
    # ------------------------------------------------------------------

    def _mark_unsaved(self) -> None:
        self.status = SaveStatus.UNSAVED
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.create_task(self._autosave_after(self.debounce_seconds))

    async def _autosave_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        # The save runs in its own task so a later edit only cancels the timer.
        self._save_task = asyncio.create_task(self._autosave())

    async def _autosave(self) -> None:
        try:
            await self.flush()
        except Exception as exc:
            logger.warning("Auto-save of lab record %s failed: %s", self.record_id, exc)

    async def flush(self) -> None:
        """
        Write every section and the record title to the server.

        Sections edited while the requests are in flight keep their local
        values and leave the session ``unsaved``.
        """
        async with self._flush_lock:
            if self._timer is not None and not self._timer.done():
                self._timer.cancel()
            self._dirty_sections.clear()
            title_dirty, self._title_dirty = self._title_dirty, False
            self.status = SaveStatus.SAVING
            try:
                for s in list(self.sections):
                    saved = await self.api.update_section(
                        s.id,
                        title=s.title,
                        content=s.content,
                        order=s.order,
                        is_hidden=s.is_hidden,
                    )
                    self._reconcile(saved)
                if title_dirty:
                    record = await self.api.update_lab_record(self.record_id, title=self.title)
                    if not self._title_dirty:
                        self.title = record.title
            except Exception as exc:
                self.last_error = exc
                self._title_dirty = self._title_dirty or title_dirty
                self.status = SaveStatus.UNSAVED
                raise

            self.last_error = None
            if self._dirty_sections or self._title_dirty:
                self.status = SaveStatus.UNSAVED
            else:
                self.status = SaveStatus.SAVED
            logger.info("Saved lab record %s (%d sections)", self.record_id, len(self.sections))

    def _reconcile(self, saved: SectionResponse) -> None:
        for index, s in enumerate(self.sections):
            if s.id != saved.id:
                continue
            if saved.id in self._dirty_sections:
                self.sections[index] = s.model_copy(update={"version": saved.version})
            else:
                self.sections[index] = saved
            return

    async def wait_idle(self) -> None:
        """Wait for a pending debounce timer and the save it starts."""
        if self._timer is not None:
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
        if self._save_task is not None:
            await self._save_task

    async def close(self, save: bool = True) -> None:
        """Stop the timer; optionally write out pending edits first."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        if self._save_task is not None:
            await self._save_task
        if save and self.status == SaveStatus.UNSAVED:
            await self.flush()


class EditorStore:
    """Open editor sessions keyed by lab record id."""

    def __init__(self, api: LabRecordApiClient, debounce_seconds: Optional[float] = None) -> None:
        self.api = api
        self.debounce_seconds = debounce_seconds
        self._sessions: Dict[str, EditorSession] = {}

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._sessions

    def get(self, record_id: str) -> Optional[EditorSession]:
        return self._sessions.get(record_id)

    async def open(self, record_id: str) -> EditorSession:
        """Return the open session for *record_id*, loading it on first use."""
        session = self._sessions.get(record_id)
        if session is None:
            session = EditorSession(self.api, record_id, self.debounce_seconds)
            await session.load()
            self._sessions[record_id] = session
        return session

    async def create(self, title: str, template_type: str) -> EditorSession:
        """Create a record seeded from *template_type* and open it."""
        record = await self.api.create_lab_record(title, template_type)
        return await self.open(record.id)

    async def close(self, record_id: str, save: bool = True) -> None:
        session = self._sessions.pop(record_id, None)
        if session is not None:
            await session.close(save=save)

    async def close_all(self, save: bool = True) -> None:
        for record_id in list(self._sessions):
            await self.close(record_id, save=save)
