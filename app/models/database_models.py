"""
SQLAlchemy ORM models for the Lab Records database.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Boolean,
    JSON,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
import uuid

from app.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


# Enums
class TemplateType(str, enum.Enum):
    """Subject templates a lab record can be seeded from."""

    PHYSICS = "physics"
    CHEMISTRY = "chemistry"
    COMPUTER = "computer"


class SectionType(str, enum.Enum):
    """How a section's ``content`` column is interpreted."""

    TEXT = "text"
    CODE = "code"
    STUDENT_DETAILS = "student_details"


class ImageAlignment(str, enum.Enum):
    """Horizontal placement of a section image."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class Language(str, enum.Enum):
    """Interface languages a user can pick."""

    EN = "en"
    DE = "de"
    ES = "es"


# Models
class User(Base):
    """User account with password authentication."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    profile_image_url = Column(String(512), nullable=True)
    password_hash = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    lab_records = relationship(
        "LabRecord", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    preferences = relationship(
        "UserPreferences", back_populates="user", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )


class UserSession(Base):
    """Server-side state behind the session cookie."""

    __tablename__ = "sessions"

    sid = Column(String(64), primary_key=True)
    sess = Column(JSON, nullable=False)
    user_id = Column(String(36), nullable=True, index=True)
    expire = Column(DateTime(timezone=True), nullable=False, index=True)


class LabRecord(Base):
    """A user-owned document made of ordered sections."""

    __tablename__ = "lab_records"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    template_type = Column(String(50), nullable=False)  # physics, chemistry, computer
    customization = Column(JSON, nullable=True)  # font, theme, layout, colors
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    user = relationship("User", back_populates="lab_records")
    sections = relationship(
        "Section",
        back_populates="lab_record",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Section.order",
    )


class Section(Base):
    """Titled content unit of a lab record."""

    __tablename__ = "sections"

    id = Column(String(36), primary_key=True, default=_new_id)
    lab_record_id = Column(
        String(36), ForeignKey("lab_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    order = Column(Integer, nullable=False)
    is_hidden = Column(Boolean, nullable=False, default=False)
    section_type = Column(String(50), nullable=False)  # text, code, student_details
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    lab_record = relationship("LabRecord", back_populates="sections")
    images = relationship(
        "SectionImage",
        back_populates="section",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SectionImage.order",
    )


class SectionImage(Base):
    """Uploaded image attached to a section."""

    __tablename__ = "section_images"

    id = Column(String(36), primary_key=True, default=_new_id)
    section_id = Column(
        String(36), ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_url = Column(Text, nullable=False)
    caption = Column(Text, nullable=True)
    alignment = Column(String(20), nullable=False, default=ImageAlignment.CENTER.value)
    width = Column(Integer, nullable=False, default=100)  # percentage: 25, 50, 75, 100
    order = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    section = relationship("Section", back_populates="images")


class UserPreferences(Base):
    """Per-user editor defaults (one row per user)."""

    __tablename__ = "user_preferences"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    language = Column(String(10), nullable=False, default=Language.EN.value)
    default_font = Column(String(50), nullable=True, default="Inter")
    default_theme = Column(String(50), nullable=True, default="academic")
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    user = relationship("User", back_populates="preferences")
