"""Initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-16

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("first_name", sa.String(120), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(120), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=False, server_default=""),
        sa.Column("citizenship", sa.String(120), nullable=False, server_default=""),
        sa.Column("field_of_expertise", sa.String(255), nullable=False, server_default=""),
        sa.Column("current_employer", sa.String(255), nullable=False, server_default=""),
        sa.Column("education_json", sa.JSON(), nullable=False),
        sa.Column("profile_json", sa.JSON(), nullable=False),
        sa.Column("vault_id", sa.String(64), nullable=False, server_default=""),
        sa.Column("status", sa.String(40), nullable=False, server_default="draft"),
        *_timestamps(),
    )
    op.create_table(
        "criterion_responses",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("client_id", sa.String(32), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("criterion", sa.String(80), nullable=False),
        sa.Column("responses_json", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_criterion_responses_client_id", "criterion_responses", ["client_id"])
    op.create_table(
        "evidence_documents",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("client_id", sa.String(32), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("document_type", sa.String(80), nullable=False, server_default=""),
        sa.Column("status", sa.String(40), nullable=False, server_default="indexed"),
        *_timestamps(),
    )
    op.create_index("ix_evidence_documents_client_id", "evidence_documents", ["client_id"])
    op.create_table(
        "recommenders",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("client_id", sa.String(32), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), nullable=False, server_default=""),
        sa.Column("organization", sa.String(255), nullable=False, server_default=""),
        sa.Column("relationship", sa.String(255), nullable=False, server_default=""),
        sa.Column("linkedin_url", sa.String(500), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=False, server_default=""),
        sa.Column("phone", sa.String(50), nullable=False, server_default=""),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(40), nullable=False, server_default="identified"),
        sa.Column("source_type", sa.String(40), nullable=False, server_default="manual"),
        sa.Column("ai_reasoning", sa.Text(), nullable=False, server_default=""),
        sa.Column("criteria_relevance_json", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_recommenders_client_id", "recommenders", ["client_id"])
    op.create_table(
        "drafts",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("client_id", sa.String(32), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("document_type", sa.String(40), nullable=False),
        sa.Column(
            "recommender_id",
            sa.String(32),
            sa.ForeignKey("recommenders.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.String(255), nullable=False, server_default=""),
        sa.Column("status", sa.String(40), nullable=False, server_default="not_started"),
        sa.Column("status_before_generation", sa.String(40), nullable=True),
        sa.Column("content_json", sa.JSON(), nullable=True),
        sa.Column("plain_text", sa.Text(), nullable=True),
        sa.Column("sections_json", sa.JSON(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=False, server_default=""),
        *_timestamps(),
    )
    op.create_index("ix_drafts_client_id", "drafts", ["client_id"])
    op.create_index("ix_drafts_triple", "drafts", ["client_id", "document_type", "recommender_id"], unique=True)
    op.create_table(
        "draft_versions",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("draft_id", sa.String(32), sa.ForeignKey("drafts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("note", sa.Text(), nullable=False, server_default=""),
        sa.Column("content_json", sa.JSON(), nullable=True),
        sa.Column("plain_text", sa.Text(), nullable=True),
        sa.Column("sections_json", sa.JSON(), nullable=False),
        sa.Column("created_by", sa.String(120), nullable=False, server_default=""),
        *_timestamps(),
    )
    op.create_index("ix_draft_versions_draft_id", "draft_versions", ["draft_id"])
    op.create_table(
        "eligibility_reports",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "client_id",
            sa.String(32),
            sa.ForeignKey("clients.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("verdict", sa.String(40), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False, server_default=""),
        sa.Column("criteria_json", sa.JSON(), nullable=False),
        sa.Column("raw_output", sa.Text(), nullable=False, server_default=""),
        *_timestamps(),
    )
    op.create_table(
        "gap_analyses",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("client_id", sa.String(32), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("overall_strength", sa.String(40), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False, server_default=""),
        sa.Column("criteria_json", sa.JSON(), nullable=False),
        sa.Column("priority_actions_json", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_gap_analyses_client_id", "gap_analyses", ["client_id"])


def downgrade() -> None:
    op.drop_index("ix_gap_analyses_client_id", table_name="gap_analyses")
    op.drop_table("gap_analyses")
    op.drop_table("eligibility_reports")
    op.drop_index("ix_draft_versions_draft_id", table_name="draft_versions")
    op.drop_table("draft_versions")
    op.drop_index("ix_drafts_triple", table_name="drafts")
    op.drop_index("ix_drafts_client_id", table_name="drafts")
    op.drop_table("drafts")
    op.drop_index("ix_recommenders_client_id", table_name="recommenders")
    op.drop_table("recommenders")
    op.drop_index("ix_evidence_documents_client_id", table_name="evidence_documents")
    op.drop_table("evidence_documents")
    op.drop_index("ix_criterion_responses_client_id", table_name="criterion_responses")
    op.drop_table("criterion_responses")
    op.drop_table("clients")
