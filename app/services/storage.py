"""
Typed repository over the lab-records schema.

Every record-scoped query filters by the owner's ``user_id``. Section and
image operations re-derive ownership by joining through their parent
record, so a caller can never reach another tenant's rows by id alone.

All methods run on the caller's ``AsyncSession`` and only ``flush``; the
request's ``get_db`` dependency commits or rolls back the whole unit.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database_models import (
    LabRecord,
    Section,
    SectionImage,
    User,
    UserPreferences,
)
from app.utils.errors import StaleSectionError

logger = logging.getLogger(__name__)

_LAB_RECORD_FIELDS = {"title", "template_type", "customization"}
_SECTION_FIELDS = {"title", "content", "order", "is_hidden", "section_type"}
_USER_FIELDS = {"first_name", "last_name", "profile_image_url"}
_PREFERENCE_FIELDS = {"language", "default_font", "default_theme"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _apply(row: Any, updates: Dict[str, Any], allowed: set) -> None:
    for key, value in updates.items():
        if key in allowed:
            setattr(row, key, value)


class LabRecordStorage:
    """CRUD operations for users, lab records, sections, images and preferences."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(func.lower(User.email) == email.lower()))
        return result.scalar_one_or_none()

    async def create_user(
        self,
        email: str,
        password_hash: Optional[str],
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        profile_image_url: Optional[str] = None,
    ) -> User:
        user = User(
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            profile_image_url=profile_image_url,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        logger.info("Created user id=%s email=%s", user.id, user.email)
        return user

    async def update_user(self, user_id: str, updates: Dict[str, Any]) -> Optional[User]:
        user = await self.get_user(user_id)
        if user is None:
            return None
        _apply(user, updates, _USER_FIELDS)
        user.updated_at = _utcnow()
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def delete_user(self, user_id: str) -> bool:
        result = await self.db.execute(delete(User).where(User.id == user_id))
        await self.db.flush()
        deleted = result.rowcount > 0
        if deleted:
            logger.info("Deleted user id=%s", user_id)
        return deleted

    # ------------------------------------------------------------------
    # Lab records
    # ------------------------------------------------------------------

    async def get_lab_records(self, user_id: str) -> Sequence[LabRecord]:
        """All records of *user_id*, most recently updated first."""
        result = await self.db.execute(
            select(LabRecord)
            .where(LabRecord.user_id == user_id)
            .order_by(LabRecord.updated_at.desc(), LabRecord.created_at.desc())
        )
        return result.scalars().all()

    async def get_lab_record(self, record_id: str, user_id: str) -> Optional[LabRecord]:
        result = await self.db.execute(
            select(LabRecord).where(LabRecord.id == record_id, LabRecord.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_lab_record(
        self,
        user_id: str,
        title: str,
        template_type: str,
        customization: Optional[Dict[str, Any]] = None,
        sections: Optional[List[Dict[str, Any]]] = None,
    ) -> LabRecord:
        """Insert a record and, optionally, its initial section rows."""
        record = LabRecord(
            user_id=user_id,
            title=title,
            template_type=template_type,
            customization=customization,
        )
        self.db.add(record)
        await self.db.flush()

        for section_data in sections or []:
            self.db.add(Section(lab_record_id=record.id, **section_data))

        await self.db.flush()
        await self.db.refresh(record)
        logger.info(
            "Created lab record id=%s title=%r template=%s (%d sections) for user=%s",
            record.id, record.title, record.template_type, len(sections or []), user_id,
        )
        return record

    async def update_lab_record(
        self, record_id: str, user_id: str, updates: Dict[str, Any]
    ) -> Optional[LabRecord]:
        record = await self.get_lab_record(record_id, user_id)
        if record is None:
            return None
        _apply(record, updates, _LAB_RECORD_FIELDS)
        record.updated_at = _utcnow()
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def delete_lab_record(self, record_id: str, user_id: str) -> bool:
        result = await self.db.execute(
            delete(LabRecord).where(LabRecord.id == record_id, LabRecord.user_id == user_id)
        )
        await self.db.flush()
        deleted = result.rowcount > 0
        if deleted:
            logger.info("Deleted lab record id=%s", record_id)
        return deleted

    async def duplicate_lab_record(self, record_id: str, user_id: str) -> Optional[LabRecord]:
        """
        Copy a record and all of its sections under fresh ids.

        The copy's title gets a " (Copy)" suffix. Section images are not
        copied. All rows are written in the caller's transaction, so a
        failure part-way leaves nothing behind once the request rolls back.
        """
        original = await self.get_lab_record(record_id, user_id)
        if original is None:
            return None

        copy = LabRecord(
            user_id=original.user_id,
            title=f"{original.title} (Copy)",
            template_type=original.template_type,
            customization=original.customization,
        )
        self.db.add(copy)
        await self.db.flush()

        original_sections = await self._sections_of(original.id)
        for section in original_sections:
            self.db.add(Section(
                lab_record_id=copy.id,
                title=section.title,
                content=section.content,
                order=section.order,
                is_hidden=section.is_hidden,
                section_type=section.section_type,
            ))

        await self.db.flush()
        await self.db.refresh(copy)
        logger.info(
            "Duplicated lab record id=%s -> id=%s (%d sections)",
            original.id, copy.id, len(original_sections),
        )
        return copy

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    async def _sections_of(self, record_id: str) -> Sequence[Section]:
        result = await self.db.execute(
            select(Section)
            .where(Section.lab_record_id == record_id)
            .order_by(Section.order, Section.created_at)
        )
        return result.scalars().all()

    async def get_sections(self, record_id: str, user_id: str) -> Optional[Sequence[Section]]:
        """Sections of an owned record ordered by ``order``; ``None`` if the record is not owned."""
        record = await self.get_lab_record(record_id, user_id)
        if record is None:
            return None
        return await self._sections_of(record.id)

    async def get_section(self, section_id: str, user_id: str) -> Optional[Section]:
        result = await self.db.execute(
            select(Section)
            .join(LabRecord, LabRecord.id == Section.lab_record_id)
            .where(Section.id == section_id, LabRecord.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_section(
        self, record_id: str, user_id: str, data: Dict[str, Any]
    ) -> Optional[Section]:
        """Add a section to an owned record; a missing ``order`` appends it at the end."""
        record = await self.get_lab_record(record_id, user_id)
        if record is None:
            return None

        values = {key: value for key, value in data.items() if key in _SECTION_FIELDS}
        if values.get("order") is None:
            result = await self.db.execute(
                select(func.max(Section.order)).where(Section.lab_record_id == record.id)
            )
            current_max = result.scalar()
            values["order"] = 0 if current_max is None else current_max + 1

        section = Section(lab_record_id=record.id, **values)
        self.db.add(section)
        record.updated_at = _utcnow()
        await self.db.flush()
        await self.db.refresh(section)
        return section

    async def update_section(
        self,
        section_id: str,
        user_id: str,
        updates: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[Section]:
        """
        Apply a partial update to an owned section.

        Raises:
            StaleSectionError: *expected_version* is given and the stored
                version has moved on.
        """
        section = await self.get_section(section_id, user_id)
        if section is None:
            return None
        if expected_version is not None and expected_version != section.version:
            raise StaleSectionError(section.id, expected_version, section.version)

        _apply(section, updates, _SECTION_FIELDS)
        section.version = section.version + 1
        section.updated_at = _utcnow()
        await self.db.flush()
        await self.db.refresh(section)
        return section

    async def delete_section(self, section_id: str, user_id: str) -> bool:
        section = await self.get_section(section_id, user_id)
        if section is None:
            return False
        await self.db.execute(delete(Section).where(Section.id == section.id))
        await self.db.flush()
        return True

    async def update_sections_order(
        self, record_id: str, user_id: str, section_ids: List[str]
    ) -> Optional[List[Section]]:
        """
        Renumber the sections of an owned record by list position.

        Each id in *section_ids* gets its index as ``order``. Sections of the
        record missing from the list keep their relative order and follow the
        listed ones, so the result is always a dense 0..n-1 sequence.

        Returns the reordered sections, or ``None`` when the record is not
        owned. Raises ``KeyError`` for ids that do not belong to the record.
        """
        record = await self.get_lab_record(record_id, user_id)
        if record is None:
            return None

        sections = list(await self._sections_of(record.id))
        by_id = {section.id: section for section in sections}
        unknown = [section_id for section_id in section_ids if section_id not in by_id]
        if unknown:
            raise KeyError(unknown[0])

        listed = []
        seen = set()
        for section_id in section_ids:
            if section_id not in seen:
                seen.add(section_id)
                listed.append(by_id[section_id])
        remaining = [section for section in sections if section.id not in seen]

        now = _utcnow()
        ordered = listed + remaining
        for index, section in enumerate(ordered):
            if section.order != index:
                section.order = index
                section.updated_at = now
        record.updated_at = now
        await self.db.flush()
        return ordered

    # ------------------------------------------------------------------
    # Section images
    # ------------------------------------------------------------------

    async def get_section_images(
        self, section_id: str, user_id: str
    ) -> Optional[Sequence[SectionImage]]:
        section = await self.get_section(section_id, user_id)
        if section is None:
            return None
        result = await self.db.execute(
            select(SectionImage)
            .where(SectionImage.section_id == section.id)
            .order_by(SectionImage.order, SectionImage.created_at)
        )
        return result.scalars().all()

    async def get_images_for_sections(self, section_ids: List[str]) -> Dict[str, List[SectionImage]]:
        """Images grouped by section id, each group ordered by ``order``."""
        grouped: Dict[str, List[SectionImage]] = {section_id: [] for section_id in section_ids}
        if not section_ids:
            return grouped
        result = await self.db.execute(
            select(SectionImage)
            .where(SectionImage.section_id.in_(section_ids))
            .order_by(SectionImage.order, SectionImage.created_at)
        )
        for image in result.scalars().all():
            grouped[image.section_id].append(image)
        return grouped

    async def get_section_image(self, image_id: str, user_id: str) -> Optional[SectionImage]:
        result = await self.db.execute(
            select(SectionImage)
            .join(Section, Section.id == SectionImage.section_id)
            .join(LabRecord, LabRecord.id == Section.lab_record_id)
            .where(SectionImage.id == image_id, LabRecord.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_section_image(
        self,
        section_id: str,
        image_url: str,
        caption: Optional[str] = None,
        alignment: str = "center",
        width: int = 100,
        order: int = 0,
    ) -> SectionImage:
        """Insert an image row; the caller has already verified section ownership."""
        image = SectionImage(
            section_id=section_id,
            image_url=image_url,
            caption=caption,
            alignment=alignment,
            width=width,
            order=order,
        )
        self.db.add(image)
        await self.db.flush()
        await self.db.refresh(image)
        return image

    async def delete_section_image(self, image_id: str, user_id: str) -> bool:
        image = await self.get_section_image(image_id, user_id)
        if image is None:
            return False
        await self.db.execute(delete(SectionImage).where(SectionImage.id == image.id))
        await self.db.flush()
        return True

    async def image_urls_for_record(self, record_id: str) -> List[str]:
        result = await self.db.execute(
            select(SectionImage.image_url)
            .join(Section, Section.id == SectionImage.section_id)
            .where(Section.lab_record_id == record_id)
        )
        return [url for (url,) in result.all()]

    async def image_urls_for_section(self, section_id: str) -> List[str]:
        result = await self.db.execute(
            select(SectionImage.image_url).where(SectionImage.section_id == section_id)
        )
        return [url for (url,) in result.all()]

    async def image_urls_for_user(self, user_id: str) -> List[str]:
        result = await self.db.execute(
            select(SectionImage.image_url)
            .join(Section, Section.id == SectionImage.section_id)
            .join(LabRecord, LabRecord.id == Section.lab_record_id)
            .where(LabRecord.user_id == user_id)
        )
        return [url for (url,) in result.all()]

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def get_user_preferences(self, user_id: str) -> Optional[UserPreferences]:
        result = await self.db.execute(
            select(UserPreferences).where(UserPreferences.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def upsert_user_preferences(
        self, user_id: str, updates: Dict[str, Any]
    ) -> UserPreferences:
        prefs = await self.get_user_preferences(user_id)
        if prefs is None:
            prefs = UserPreferences(user_id=user_id)
            self.db.add(prefs)
        _apply(prefs, {k: v for k, v in updates.items() if v is not None}, _PREFERENCE_FIELDS)
        prefs.updated_at = _utcnow()
        await self.db.flush()
        await self.db.refresh(prefs)
        return prefs
