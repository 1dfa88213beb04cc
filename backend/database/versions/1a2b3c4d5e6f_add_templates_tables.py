"""add_templates_tables

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "templates",
        sa.Column("template_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("aspect_ratio", sa.String(), nullable=False, server_default="9:16"),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column("current_version", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("template_id"),
    )
    op.create_index(
        op.f("ix_templates_template_id"), "templates", ["template_id"], unique=False
    )
    op.create_index("ix_templates_updated_at", "templates", ["updated_at"], unique=False)

    op.create_table(
        "template_revisions",
        sa.Column("revision_id", sa.UUID(), nullable=False),
        sa.Column("template_id", sa.String(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("snapshot", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("saved_by", sa.String(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.ForeignKeyConstraint(
            ["template_id"], ["templates.template_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("revision_id"),
    )
    op.create_index(
        op.f("ix_template_revisions_revision_id"),
        "template_revisions",
        ["revision_id"],
        unique=True,
    )
    op.create_index(
        "ix_template_revisions_template_version",
        "template_revisions",
        ["template_id", "version"],
        unique=True,
    )
    op.create_index(
        "ix_template_revisions_template_id",
        "template_revisions",
        ["template_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_template_revisions_template_id", table_name="template_revisions")
    op.drop_index(
        "ix_template_revisions_template_version", table_name="template_revisions"
    )
    op.drop_index(
        op.f("ix_template_revisions_revision_id"), table_name="template_revisions"
    )
    op.drop_table("template_revisions")

    op.drop_index("ix_templates_updated_at", table_name="templates")
    op.drop_index(op.f("ix_templates_template_id"), table_name="templates")
    op.drop_table("templates")
