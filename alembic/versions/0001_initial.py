"""lexicon schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19 00:00:00.000000
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.create_table(
    "lexicon_entries",
    sa.Column("id", sa.String(length=64), primary_key=True),
    sa.Column("base_word", sa.String(length=128), nullable=False),
    sa.Column("category", sa.String(length=32), nullable=False, server_default="other"),
    sa.Column("severity_level", sa.Integer(), nullable=False, server_default="3"),
    sa.Column("confidence_score", sa.Float(), nullable=False, server_default="0.85"),
    sa.Column("source", sa.String(length=32), nullable=False, server_default="manual"),
    sa.Column("detection_count", sa.Integer(), nullable=False, server_default="1"),
    sa.Column("variation_detections", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("false_positive_reports", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column("first_detected_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("last_detected_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_lexicon_entries_base_word", "lexicon_entries", ["base_word"], unique=True)
  op.create_index("ix_lexicon_entries_is_active", "lexicon_entries", ["is_active"])

  op.create_table(
    "lexicon_variations",
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("entry_id", sa.String(length=64), sa.ForeignKey("lexicon_entries.id"), nullable=False),
    sa.Column("variant", sa.String(length=256), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("entry_id", "variant", name="uq_lexicon_variations_entry_variant"),
  )
  op.create_index("ix_lexicon_variations_entry_id", "lexicon_variations", ["entry_id"])
  op.create_index("ix_lexicon_variations_variant", "lexicon_variations", ["variant"])


def downgrade() -> None:
  op.drop_index("ix_lexicon_variations_variant", table_name="lexicon_variations")
  op.drop_index("ix_lexicon_variations_entry_id", table_name="lexicon_variations")
  op.drop_table("lexicon_variations")
  op.drop_index("ix_lexicon_entries_is_active", table_name="lexicon_entries")
  op.drop_index("ix_lexicon_entries_base_word", table_name="lexicon_entries")
  op.drop_table("lexicon_entries")
