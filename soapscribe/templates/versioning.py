from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from soapscribe.domain.exceptions import (
    BusinessValidationError,
    TemplateVersionNotFoundError,
    VersionConflictError,
)

COPY_SUFFIX = " (Copy)"
MAX_NAME_LENGTH = 255


@dataclass(frozen=True)
class TemplateVersion:
    """A superseded state of a template. Immutable once appended to history."""

    version: int
    content: str
    updated_at: datetime
    updated_by: str | None

    def __post_init__(self) -> None:
        if self.version < 1:
            raise ValueError("TemplateVersion.version must be >= 1")


@dataclass(frozen=True)
class Template:
    """
    Reusable note skeleton with its current content and append-only edit history.

    `history` holds every superseded version in ascending order; the current state is the
    top-level `content`/`version` and is never part of `history`.
    """

    id: uuid.UUID
    name: str
    specialty: str | None
    content: str
    version: int
    created_at: datetime
    updated_at: datetime
    created_by: str | None = None
    updated_by: str | None = None
    tags: tuple[str, ...] = ()
    history: tuple[TemplateVersion, ...] = field(default=())

    def content_at(self, version: int) -> str:
        """Content as of `version` (current or historical)."""

        if version == self.version:
            return self.content
        for snapshot in self.history:
            if snapshot.version == version:
                return snapshot.content
        raise TemplateVersionNotFoundError(template_id=self.id, version=version)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(UTC)


def _validate_name(name: str) -> str:
    normalized = name.strip()
    if not normalized:
        raise BusinessValidationError("Template name must not be empty.")
    if len(normalized) > MAX_NAME_LENGTH:
        raise BusinessValidationError(
            f"Template name must be {MAX_NAME_LENGTH} characters or fewer."
        )
    return normalized


def _normalize_tags(tags: Iterable[str]) -> tuple[str, ...]:
    seen: list[str] = []
    for tag in tags:
        cleaned = tag.strip()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return tuple(seen)


def create_template(
    *,
    name: str,
    specialty: str | None,
    content: str,
    author: str | None,
    tags: Iterable[str] = (),
    now: datetime | None = None,
) -> Template:
    ts = _now(now)
    return Template(
        id=uuid.uuid4(),
        name=_validate_name(name),
        specialty=(specialty or "").strip() or None,
        content=content,
        version=1,
        created_at=ts,
        updated_at=ts,
        created_by=author,
        updated_by=author,
        tags=_normalize_tags(tags),
    )


def edit_template(
    template: Template,
    *,
    new_content: str,
    author: str | None,
    expected_version: int,
    now: datetime | None = None,
) -> Template:
    """
    Supersede the current content with `new_content`.

    The outgoing state is appended to history with its own timestamp and author, then the
    version is bumped by one. `expected_version` is the version the editor last read; any
    mismatch raises `VersionConflictError` without touching the template.
    """

    if expected_version != template.version:
        raise VersionConflictError(
            template_id=template.id,
            expected_version=expected_version,
            current_version=template.version,
        )

    snapshot = TemplateVersion(
        version=template.version,
        content=template.content,
        updated_at=template.updated_at,
        updated_by=template.updated_by,
    )
    return dataclasses.replace(
        template,
        content=new_content,
        version=template.version + 1,
        updated_at=_now(now),
        updated_by=author,
        history=(*template.history, snapshot),
    )


def duplicate_template(
    template: Template, *, author: str | None = None, now: datetime | None = None
) -> Template:
    """Independent copy at version 1. Shares no history with the source."""

    name = template.name + COPY_SUFFIX
    if len(name) > MAX_NAME_LENGTH:
        name = template.name[: MAX_NAME_LENGTH - len(COPY_SUFFIX)] + COPY_SUFFIX
    return create_template(
        name=name,
        specialty=template.specialty,
        content=template.content,
        author=author if author is not None else template.updated_by,
        tags=template.tags,
        now=now,
    )


def restore_template(
    template: Template,
    *,
    target_version: int,
    author: str | None,
    expected_version: int,
    now: datetime | None = None,
) -> Template:
    """Re-apply the content of `target_version` as a new version. History is never rewound."""

    content = template.content_at(target_version)
    return edit_template(
        template,
        new_content=content,
        author=author,
        expected_version=expected_version,
        now=now,
    )
