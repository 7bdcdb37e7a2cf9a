"""Database and schema models for Lab Records."""
from app.models.database_models import (
    User,
    UserSession,
    LabRecord,
    Section,
    SectionImage,
    UserPreferences,
    TemplateType,
    SectionType,
    ImageAlignment,
    Language,
)
from app.models.schemas import (
    LabRecordCreate,
    LabRecordResponse,
    SectionCreate,
    SectionResponse,
    SectionImageResponse,
    UserPreferencesResponse,
    UserResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "User",
    "UserSession",
    "LabRecord",
    "Section",
    "SectionImage",
    "UserPreferences",
    "TemplateType",
    "SectionType",
    "ImageAlignment",
    "Language",
    # Pydantic schemas
    "LabRecordCreate",
    "LabRecordResponse",
    "SectionCreate",
    "SectionResponse",
    "SectionImageResponse",
    "UserPreferencesResponse",
    "UserResponse",
    "HealthCheckResponse",
]
