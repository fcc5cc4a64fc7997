from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from soapscribe.templates.versioning import Template, TemplateVersion


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255, examples=["Annual physical"])
    specialty: str | None = Field(default=None, max_length=120, examples=["family_medicine"])
    content: str = Field(description="Template body (rich text).")
    author: str | None = Field(default=None, max_length=255)
    tags: list[str] = Field(default_factory=list, max_length=20)


class TemplateEdit(BaseModel):
    content: str = Field(description="New template body.")
    author: str | None = Field(default=None, max_length=255)
    expected_version: int = Field(
        ge=1,
        description=(
            "Version the editor last read. A mismatch with the stored version answers 409 and "
            "changes nothing."
        ),
    )


class TemplateDuplicate(BaseModel):
    author: str | None = Field(default=None, max_length=255)


class TemplateRestore(BaseModel):
    target_version: int = Field(ge=1, description="Historical (or current) version to re-apply.")
    author: str | None = Field(default=None, max_length=255)
    expected_version: int = Field(ge=1)


class TemplateOut(BaseModel):
    id: uuid.UUID
    name: str
    specialty: str | None = None
    content: str
    version: int = Field(description="Current version; bumped on every edit and restore.")
    tags: list[str] = Field(default_factory=list)
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime = Field(description="Creation timestamp (UTC).")
    updated_at: datetime = Field(description="Timestamp of the current version (UTC).")

    @classmethod
    def from_template(cls, template: Template) -> TemplateOut:
        return cls(
            id=template.id,
            name=template.name,
            specialty=template.specialty,
            content=template.content,
            version=template.version,
            tags=list(template.tags),
            created_by=template.created_by,
            updated_by=template.updated_by,
            created_at=template.created_at,
            updated_at=template.updated_at,
        )


class TemplateListOut(BaseModel):
    items: list[TemplateOut]


class TemplateVersionOut(BaseModel):
    version: int
    content: str
    updated_at: datetime
    updated_by: str | None = None

    @classmethod
    def from_version(cls, snapshot: TemplateVersion) -> TemplateVersionOut:
        return cls(
            version=snapshot.version,
            content=snapshot.content,
            updated_at=snapshot.updated_at,
            updated_by=snapshot.updated_by,
        )


class TemplateHistoryOut(BaseModel):
    template_id: uuid.UUID
    current_version: int
    items: list[TemplateVersionOut] = Field(
        description="Superseded versions, oldest first. The current version is not included."
    )
