from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from soapscribe.core.metrics import template_version_conflicts_total
from soapscribe.domain.exceptions import VersionConflictError
from soapscribe.templates.models import NoteTemplate, NoteTemplateVersion
from soapscribe.templates.versioning import (
    Template,
    TemplateVersion,
    create_template,
    duplicate_template,
    edit_template,
    restore_template,
)

logger = logging.getLogger("soapscribe.templates")


def _ensure_timezone_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        # SQLite drops tzinfo; stored values are always UTC.
        return dt.replace(tzinfo=UTC)
    return dt


def _to_domain(row: NoteTemplate, versions: Iterable[NoteTemplateVersion] = ()) -> Template:
    return Template(
        id=row.id,
        name=row.name,
        specialty=row.specialty,
        content=row.content,
        version=row.version,
        created_at=_ensure_timezone_aware(row.created_at),
        updated_at=_ensure_timezone_aware(row.updated_at),
        created_by=row.created_by,
        updated_by=row.updated_by,
        tags=tuple(row.tags or ()),
        history=tuple(
            TemplateVersion(
                version=v.version,
                content=v.content,
                updated_at=_ensure_timezone_aware(v.updated_at),
                updated_by=v.updated_by,
            )
            for v in versions
        ),
    )


def _conflict(
    *, template: Template, expected_version: int, current_version: int | None = None
) -> VersionConflictError:
    template_version_conflicts_total.inc()
    logger.info(
        "Template version conflict",
        extra={
            "template_id": str(template.id),
            "template_version": expected_version,
            "outcome": "conflict",
        },
    )
    return VersionConflictError(
        template_id=template.id,
        expected_version=expected_version,
        current_version=current_version,
    )


class TemplateService:
    """
    Persistence adapter for the template version store.

    Mutations run through the pure functions in `versioning`; this class only loads and
    stores their results. Edits are compare-and-swap on `note_templates.version`.
    """

    def __init__(self, *, session: AsyncSession):
        self._session = session

    async def get(self, template_id: uuid.UUID, *, with_history: bool = True) -> Template | None:
        stmt = (
            select(NoteTemplate)
            .where(NoteTemplate.id == template_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None

        versions: list[NoteTemplateVersion] = []
        if with_history:
            versions_stmt = (
                select(NoteTemplateVersion)
                .where(NoteTemplateVersion.template_id == template_id)
                .order_by(NoteTemplateVersion.version.asc())
            )
            versions = list((await self._session.execute(versions_stmt)).scalars().all())
        return _to_domain(row, versions)

    async def list_templates(self, *, specialty: str | None = None) -> list[Template]:
        stmt = select(NoteTemplate)
        if specialty:
            stmt = stmt.where(NoteTemplate.specialty == specialty.strip())
        stmt = stmt.order_by(NoteTemplate.name.asc(), NoteTemplate.id.asc())
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_to_domain(r) for r in rows]

    async def create(
        self,
        *,
        name: str,
        specialty: str | None,
        content: str,
        author: str | None,
        tags: Iterable[str] = (),
    ) -> Template:
        template = create_template(
            name=name, specialty=specialty, content=content, author=author, tags=tags
        )
        await self._insert(template)
        logger.info(
            "Template created",
            extra={"template_id": str(template.id), "template_version": template.version},
        )
        return template

    async def duplicate(self, template: Template, *, author: str | None = None) -> Template:
        copy = duplicate_template(template, author=author)
        await self._insert(copy)
        logger.info(
            "Template duplicated",
            extra={"template_id": str(copy.id), "template_version": copy.version},
        )
        return copy

    async def edit(
        self,
        template: Template,
        *,
        new_content: str,
        author: str | None,
        expected_version: int,
    ) -> Template:
        try:
            updated = edit_template(
                template,
                new_content=new_content,
                author=author,
                expected_version=expected_version,
            )
        except VersionConflictError as exc:
            raise _conflict(
                template=template,
                expected_version=expected_version,
                current_version=exc.current_version,
            ) from None
        await self._swap(
            before=template,
            after=updated,
            expected_version=expected_version,
            event="Template edited",
        )
        return updated

    async def restore(
        self,
        template: Template,
        *,
        target_version: int,
        author: str | None,
        expected_version: int,
    ) -> Template:
        try:
            updated = restore_template(
                template,
                target_version=target_version,
                author=author,
                expected_version=expected_version,
            )
        except VersionConflictError as exc:
            raise _conflict(
                template=template,
                expected_version=expected_version,
                current_version=exc.current_version,
            ) from None
        await self._swap(
            before=template,
            after=updated,
            expected_version=expected_version,
            event="Template restored",
        )
        return updated

    async def _insert(self, template: Template) -> None:
        self._session.add(
            NoteTemplate(
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
        )
        await self._session.commit()

    async def _swap(
        self, *, before: Template, after: Template, expected_version: int, event: str
    ) -> None:
        stmt = (
            update(NoteTemplate)
            .where(NoteTemplate.id == before.id, NoteTemplate.version == before.version)
            .values(
                content=after.content,
                version=after.version,
                updated_at=after.updated_at,
                updated_by=after.updated_by,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            await self._session.rollback()
            raise _conflict(template=before, expected_version=expected_version)

        snapshot = after.history[-1]
        self._session.add(
            NoteTemplateVersion(
                template_id=after.id,
                version=snapshot.version,
                content=snapshot.content,
                updated_at=snapshot.updated_at,
                updated_by=snapshot.updated_by,
            )
        )
        try:
            await self._session.commit()
        except IntegrityError:
            # Another writer already recorded this snapshot version.
            await self._session.rollback()
            raise _conflict(template=before, expected_version=expected_version) from None

        logger.info(
            event,
            extra={"template_id": str(after.id), "template_version": after.version},
        )
