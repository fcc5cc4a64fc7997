"""create note template tables

Revision ID: 0001_create_note_templates
Revises:
Create Date: 2026-10-18

"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_create_note_templates"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "note_templates",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("specialty", sa.String(length=120), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("updated_by", sa.String(length=255), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint("version >= 1", name="note_templates_version_positive"),
    )
    op.create_index(op.f("ix_note_templates_name"), "note_templates", ["name"], unique=False)
    op.create_index(
        op.f("ix_note_templates_specialty"), "note_templates", ["specialty"], unique=False
    )

    op.create_table(
        "note_template_versions",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "template_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("note_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", sa.String(length=255), nullable=True),
        sa.UniqueConstraint(
            "template_id", "version", name="note_template_versions_template_version"
        ),
        sa.CheckConstraint("version >= 1", name="note_template_versions_version_positive"),
    )
    op.create_index(
        op.f("ix_note_template_versions_template_id"),
        "note_template_versions",
        ["template_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(
        op.f("ix_note_template_versions_template_id"), table_name="note_template_versions"
    )
    op.drop_table("note_template_versions")
    op.drop_index(op.f("ix_note_templates_specialty"), table_name="note_templates")
    op.drop_index(op.f("ix_note_templates_name"), table_name="note_templates")
    op.drop_table("note_templates")
