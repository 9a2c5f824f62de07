"""Create wiki page, revision and submission tables."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_create_wiki_tables"
down_revision = None
branch_labels = None
depends_on = None


BigInt = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=16)


def upgrade() -> None:
    op.create_table(
        "wiki_page",
        sa.Column("id", BigInt, primary_key=True, autoincrement=True),
        sa.Column("namespace", sa.String(length=32), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("live_slug", sa.String(length=255), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("current_revision", sa.Integer(), nullable=False),
        sa.Column("edit_count", sa.Integer(), nullable=False),
        sa.Column(
            "protection_level",
            _enum("protectionlevel", "none", "semi", "full", "admin"),
            nullable=False,
        ),
        sa.Column("protection_reason", sa.String(length=500), nullable=True),
        sa.Column("protected_by_id", BigInt, nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by_id", BigInt, nullable=True),
        sa.Column("delete_reason", sa.String(length=500), nullable=True),
        sa.Column("lock_holder_id", BigInt, nullable=True),
        sa.Column("lock_holder_name", sa.String(length=120), nullable=True),
        sa.Column("lock_start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lock_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lock_reason", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by_id", BigInt, nullable=False),
        sa.Column("created_by_name", sa.String(length=120), nullable=True),
        sa.Column("updated_by_id", BigInt, nullable=False),
        sa.Column("updated_by_name", sa.String(length=120), nullable=True),
        sa.UniqueConstraint("namespace", "live_slug", name="uq_wiki_page_namespace_live_slug"),
    )
    op.create_index("ix_wiki_page_slug", "wiki_page", ["slug"])
    op.create_index("ix_wiki_page_lock_expiry", "wiki_page", ["lock_holder_id", "lock_expiry"])

    op.create_table(
        "wiki_revision",
        sa.Column("id", BigInt, primary_key=True, autoincrement=True),
        sa.Column("page_id", BigInt, sa.ForeignKey("wiki_page.id"), nullable=False),
        sa.Column("revision_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("summary", sa.String(length=500), nullable=True),
        sa.Column(
            "edit_type",
            _enum("edittype", "create", "edit", "revert", "protect", "move"),
            nullable=False,
        ),
        sa.Column("content_length", sa.Integer(), nullable=False),
        sa.Column("size_change", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_reverted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reverted_by_id", BigInt, nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("author_id", BigInt, nullable=False),
        sa.Column("author_name", sa.String(length=120), nullable=True),
        sa.UniqueConstraint("page_id", "revision_number", name="uq_wiki_revision_page_number"),
    )
    op.create_index("ix_wiki_revision_author", "wiki_revision", ["author_id"])

    op.create_table(
        "wiki_submission",
        sa.Column("id", BigInt, primary_key=True, autoincrement=True),
        sa.Column("submission_type", _enum("submissiontype", "create", "edit"), nullable=False),
        sa.Column(
            "status",
            _enum("submissionstatus", "pending", "approved", "rejected", "onhold"),
            nullable=False,
        ),
        sa.Column("namespace", sa.String(length=32), nullable=False),
        sa.Column("target_slug", sa.String(length=255), nullable=False),
        sa.Column("target_title", sa.String(length=255), nullable=False),
        sa.Column("page_id", BigInt, sa.ForeignKey("wiki_page.id"), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("summary", sa.String(length=500), nullable=True),
        sa.Column("categories", sa.JSON(), nullable=False),
        sa.Column("expected_revision", sa.Integer(), nullable=True),
        sa.Column("author_id", BigInt, nullable=False),
        sa.Column("author_name", sa.String(length=120), nullable=True),
        sa.Column("reviewer_id", BigInt, nullable=True),
        sa.Column("reviewer_name", sa.String(length=120), nullable=True),
        sa.Column("decision_reason", sa.String(length=500), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_wiki_submission_status_created", "wiki_submission", ["status", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_wiki_submission_status_created", table_name="wiki_submission")
    op.drop_table("wiki_submission")
    op.drop_index("ix_wiki_revision_author", table_name="wiki_revision")
    op.drop_table("wiki_revision")
    op.drop_index("ix_wiki_page_lock_expiry", table_name="wiki_page")
    op.drop_index("ix_wiki_page_slug", table_name="wiki_page")
    op.drop_table("wiki_page")
