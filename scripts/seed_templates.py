"""Seed note templates for local development.

This script is designed to be safe to run multiple times:
- It only runs when APP_ENV=development
- It inserts rows only when the note_templates table is empty
"""

# ruff: noqa: I001
# pyright: reportMissingImports=false
from __future__ import annotations

import asyncio
import os

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from soapscribe.templates.models import NoteTemplate
from soapscribe.templates.service import TemplateService

SEED_AUTHOR = "seed-script"


def _seed_rows() -> list[dict]:
    """Return a deterministic set of template seed rows."""
    return [
        {
            "name": "Annual physical",
            "specialty": "family_medicine",
            "tags": ["preventive", "adult"],
            "content": (
                "<h3>Subjective</h3><p>Interval history. Concerns today.</p>"
                "<h3>Objective</h3><p>Vitals. General, CV, Resp, Abd exam.</p>"
                "<h3>Assessment</h3><p>Well adult exam.</p>"
                "<h3>Plan</h3><p>Screening labs. Vaccines. Follow up 12 months.</p>"
            ),
        },
        {
            "name": "Upper respiratory infection",
            "specialty": "urgent_care",
            "tags": ["acute"],
            "content": (
                "<h3>Subjective</h3><p>Onset, duration, cough, fever, sick contacts.</p>"
                "<h3>Objective</h3><p>Temp, SpO2. HEENT and lung exam.</p>"
                "<h3>Assessment</h3><p>Viral URI vs. bacterial process.</p>"
                "<h3>Plan</h3><p>Supportive care. Return precautions.</p>"
            ),
        },
        {
            "name": "Hypertension follow-up",
            "specialty": "family_medicine",
            "tags": ["chronic", "cardiometabolic"],
            "content": (
                "<h3>Subjective</h3><p>Home BP log. Medication adherence. Side effects.</p>"
                "<h3>Objective</h3><p>BP (two readings), HR, BMI. Edema.</p>"
                "<h3>Assessment</h3><p>Hypertension, control status.</p>"
                "<h3>Plan</h3><p>Medication changes. BMP if indicated. Follow up 4 weeks.</p>"
            ),
        },
        {
            "name": "Therapy progress note",
            "specialty": "behavioral_health",
            "tags": ["therapy"],
            "content": (
                "<h3>Subjective</h3><p>Mood, sleep, stressors since last session.</p>"
                "<h3>Objective</h3><p>Mental status exam. Screening scores.</p>"
                "<h3>Assessment</h3><p>Progress toward treatment goals.</p>"
                "<h3>Plan</h3><p>Interventions. Homework. Next session.</p>"
            ),
        },
    ]


async def seed_templates_if_empty(*, database_url: str) -> None:
    """Seed templates if the note_templates table is empty."""
    engine = create_async_engine(database_url, pool_pre_ping=True)
    sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    async with sessionmaker() as session:
        total = int(
            (await session.execute(select(func.count()).select_from(NoteTemplate))).scalar_one()
        )
        if total > 0:
            print(f"Seed skipped: note_templates table already has {total} row(s).")
            await engine.dispose()
            return

        svc = TemplateService(session=session)
        rows = _seed_rows()
        for row in rows:
            await svc.create(author=SEED_AUTHOR, **row)
        print(f"Seeded {len(rows)} templates.")

    await engine.dispose()


def main() -> None:
    """Entry point."""
    app_env = os.getenv("APP_ENV", "production").strip().lower()
    if app_env != "development":
        print(f"Seed skipped: APP_ENV={app_env!r} (seeding only runs in development).")
        return

    database_url = os.getenv("DATABASE_URL", "")
    if not database_url:
        raise SystemExit("DATABASE_URL is not set")

    asyncio.run(seed_templates_if_empty(database_url=database_url))


if __name__ == "__main__":
    main()
