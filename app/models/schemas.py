"""
Pydantic schemas for request/response validation.

Field names are snake_case in Python and camelCase on the wire; inputs
accept either spelling.
"""
from pydantic import BaseModel, Field, ConfigDict, EmailStr, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime
from enum import Enum


class ApiModel(BaseModel):
    """Base schema: camelCase aliases, ORM attribute loading, plain enum values."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


def _reject_null(value: Any) -> Any:
    # Partial updates may omit a field, but not send null for a NOT NULL column
    if value is None:
        raise ValueError("must not be null")
    return value


# Enums (matching database enums)
class TemplateTypeSchema(str, Enum):
    """Template types for API requests."""

    PHYSICS = "physics"
    CHEMISTRY = "chemistry"
    COMPUTER = "computer"


class SectionTypeSchema(str, Enum):
    """Section types for API requests."""

    TEXT = "text"
    CODE = "code"
    STUDENT_DETAILS = "student_details"


class ImageAlignmentSchema(str, Enum):
    """Image alignments for API requests."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class LanguageSchema(str, Enum):
    """Supported interface languages."""

    EN = "en"
    DE = "de"
    ES = "es"


ImageWidth = Literal[25, 50, 75, 100]


# Auth Schemas
class RegisterRequest(ApiModel):
    """Schema for account registration."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)


class LoginRequest(ApiModel):
    """Schema for password login."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(ApiModel):
    """Public view of a user (never includes the password hash)."""

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None


class UserUpdate(ApiModel):
    """Partial profile update."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=255)
    last_name: Optional[str] = Field(None, min_length=1, max_length=255)
    profile_image_url: Optional[str] = Field(None, max_length=512)


class AuthResponse(ApiModel):
    """Returned by register and login."""

    user: UserResponse
    token: str


class MessageResponse(ApiModel):
    """Plain acknowledgement."""

    message: str


# Lab Record Schemas
class LabRecordCreate(ApiModel):
    """Schema for creating a lab record (owner comes from the identity)."""

    title: str = Field(..., min_length=1, max_length=255)
    template_type: TemplateTypeSchema
    customization: Optional[Dict[str, Any]] = None


class LabRecordUpdate(ApiModel):
    """Partial lab record update."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    template_type: Optional[TemplateTypeSchema] = None
    customization: Optional[Dict[str, Any]] = None

    @field_validator("title", "template_type", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return _reject_null(value)


class LabRecordResponse(ApiModel):
    """Schema for lab record responses."""

    id: str
    user_id: str
    title: str
    template_type: str
    customization: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


# Section Schemas
class SectionCreate(ApiModel):
    """Schema for creating a section (record id comes from the path)."""

    title: str = Field(..., min_length=1, max_length=255)
    content: str = ""
    order: Optional[int] = Field(None, ge=0)
    is_hidden: bool = False
    section_type: SectionTypeSchema = SectionTypeSchema.TEXT


class SectionUpdate(ApiModel):
    """
    Partial section update.

    ``version`` is optional: when sent, the update only applies if it matches
    the stored version; when omitted, the last write wins.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = None
    order: Optional[int] = Field(None, ge=0)
    is_hidden: Optional[bool] = None
    section_type: Optional[SectionTypeSchema] = None
    version: Optional[int] = Field(None, ge=1)

    @field_validator("title", "content", "order", "is_hidden", "section_type", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return _reject_null(value)


class SectionResponse(ApiModel):
    """Schema for section responses."""

    id: str
    lab_record_id: str
    title: str
    content: str
    order: int
    is_hidden: bool
    section_type: str
    version: int
    created_at: datetime
    updated_at: datetime


class SectionOrderItem(ApiModel):
    """One entry of a reorder request."""

    id: str
    order: Optional[int] = None


class SectionReorderRequest(ApiModel):
    """Bulk reorder; array position defines the new order."""

    section_orders: List[SectionOrderItem]


# Section Image Schemas
class SectionImageMetadata(ApiModel):
    """Form fields accompanying an image upload."""

    caption: Optional[str] = None
    alignment: ImageAlignmentSchema = ImageAlignmentSchema.CENTER
    width: ImageWidth = 100
    order: int = Field(0, ge=0)


class SectionImageResponse(ApiModel):
    """Schema for section image responses."""

    id: str
    section_id: str
    image_url: str
    caption: Optional[str] = None
    alignment: str
    width: int
    order: int
    created_at: datetime


# Preferences Schemas
class UserPreferencesUpdate(ApiModel):
    """Upsert body for user preferences."""

    language: Optional[LanguageSchema] = None
    default_font: Optional[str] = Field(None, max_length=50)
    default_theme: Optional[str] = Field(None, max_length=50)

    @field_validator("language", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return _reject_null(value)


class UserPreferencesResponse(ApiModel):
    """Stored preferences, or the defaults when none are stored."""

    language: str = "en"
    default_font: Optional[str] = "Inter"
    default_theme: Optional[str] = "academic"
    updated_at: Optional[datetime] = None


# Template Schemas
class TemplateSectionResponse(ApiModel):
    """Default section of a template."""

    title: str
    content: str
    order: int
    is_hidden: bool
    section_type: str


class TemplateResponse(ApiModel):
    """A template and the sections it seeds."""

    template_type: str
    sections: List[TemplateSectionResponse]


# Export Schemas
class ExportFormat(str, Enum):
    """Downloadable document formats."""

    PDF = "pdf"
    DOCX = "docx"


class PageOrientation(str, Enum):
    """Page orientation for exports."""

    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


# Health Schemas
class HealthCheckResponse(ApiModel):
    """Schema for health check response."""

    status: str
    database: str
    timestamp: datetime
