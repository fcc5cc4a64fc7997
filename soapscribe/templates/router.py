from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from soapscribe.core.db import get_session
from soapscribe.templates.schemas import (
    TemplateCreate,
    TemplateDuplicate,
    TemplateEdit,
    TemplateHistoryOut,
    TemplateListOut,
    TemplateOut,
    TemplateRestore,
    TemplateVersionOut,
)
from soapscribe.templates.service import TemplateService
from soapscribe.templates.versioning import Template

router = APIRouter(prefix="/templates", tags=["templates"])


def get_template_service(session: AsyncSession = Depends(get_session)) -> TemplateService:
    return TemplateService(session=session)


async def _require_template(svc: TemplateService, template_id: uuid.UUID) -> Template:
    template = await svc.get(template_id)
    if template is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    return template


@router.post("", status_code=status.HTTP_201_CREATED, response_model=TemplateOut)
async def create_template_route(
    payload: TemplateCreate,
    svc: TemplateService = Depends(get_template_service),
) -> TemplateOut:
    template = await svc.create(
        name=payload.name,
        specialty=payload.specialty,
        content=payload.content,
        author=payload.author,
        tags=payload.tags,
    )
    return TemplateOut.from_template(template)


@router.get("", response_model=TemplateListOut)
async def list_templates_route(
    specialty: str | None = Query(default=None, min_length=1, max_length=120),
    svc: TemplateService = Depends(get_template_service),
) -> TemplateListOut:
    items = await svc.list_templates(specialty=specialty)
    return TemplateListOut(items=[TemplateOut.from_template(t) for t in items])


@router.get("/{template_id}", response_model=TemplateOut)
async def get_template_by_id(
    template_id: uuid.UUID,
    svc: TemplateService = Depends(get_template_service),
) -> TemplateOut:
    return TemplateOut.from_template(await _require_template(svc, template_id))


@router.put(
    "/{template_id}",
    response_model=TemplateOut,
    summary="Edit a template",
    description=(
        "Replace the template body. The superseded version is appended to history. "
        "`expected_version` must equal the stored version, otherwise 409 is returned and the "
        "caller should reload and retry."
    ),
)
async def edit_template_route(
    template_id: uuid.UUID,
    payload: TemplateEdit,
    svc: TemplateService = Depends(get_template_service),
) -> TemplateOut:
    template = await _require_template(svc, template_id)
    updated = await svc.edit(
        template,
        new_content=payload.content,
        author=payload.author,
        expected_version=payload.expected_version,
    )
    return TemplateOut.from_template(updated)


@router.post(
    "/{template_id}/duplicate", status_code=status.HTTP_201_CREATED, response_model=TemplateOut
)
async def duplicate_template_route(
    template_id: uuid.UUID,
    payload: TemplateDuplicate | None = None,
    svc: TemplateService = Depends(get_template_service),
) -> TemplateOut:
    template = await _require_template(svc, template_id)
    copy = await svc.duplicate(template, author=payload.author if payload else None)
    return TemplateOut.from_template(copy)


@router.post(
    "/{template_id}/restore",
    response_model=TemplateOut,
    summary="Restore a previous version",
    description=(
        "Re-apply the content of `target_version` as a new version. History is never rewound; "
        "404 when the version does not exist, 409 on a stale `expected_version`."
    ),
)
async def restore_template_route(
    template_id: uuid.UUID,
    payload: TemplateRestore,
    svc: TemplateService = Depends(get_template_service),
) -> TemplateOut:
    template = await _require_template(svc, template_id)
    restored = await svc.restore(
        template,
        target_version=payload.target_version,
        author=payload.author,
        expected_version=payload.expected_version,
    )
    return TemplateOut.from_template(restored)


@router.get("/{template_id}/versions", response_model=TemplateHistoryOut)
async def list_template_versions(
    template_id: uuid.UUID,
    svc: TemplateService = Depends(get_template_service),
) -> TemplateHistoryOut:
    template = await _require_template(svc, template_id)
    return TemplateHistoryOut(
        template_id=template.id,
        current_version=template.version,
        items=[TemplateVersionOut.from_version(v) for v in template.history],
    )
