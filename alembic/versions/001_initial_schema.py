"""Initial schema - profiles, OTP challenges, swipes, matches, messages.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. profiles ─────────────────────────────────────────────────
    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(120), nullable=True),
        sa.Column("age", sa.Integer, nullable=True),
        sa.Column("gender", sa.String(32), nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column(
            "interests",
            sa.JSON,
            nullable=False,
            comment="Ordered list of interest tags",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"], unique=True)

    # ── 2. otp_challenges ───────────────────────────────────────────
    op.create_table(
        "otp_challenges",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column(
            "code_hash",
            sa.String(64),
            nullable=False,
            comment="sha256(email:code)",
        ),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.String(16),
            nullable=False,
            comment="PENDING / CONSUMED / SUPERSEDED",
        ),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_otp_email_issued", "otp_challenges", ["email", "issued_at"])

    # ── 3. swipes ───────────────────────────────────────────────────
    op.create_table(
        "swipes",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "actor_id",
            sa.Uuid,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "target_id",
            sa.Uuid,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("action", sa.String(8), nullable=False, comment="LIKE / PASS"),
        sa.Column("swiped_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("actor_id", "target_id", name="uq_swipe_pair"),
    )

    # ── 4. matches ──────────────────────────────────────────────────
    op.create_table(
        "matches",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "profile_a_id",
            sa.Uuid,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "profile_b_id",
            sa.Uuid,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("profile_a_id", "profile_b_id", name="uq_match_pair"),
    )
    op.create_index("ix_match_profile_b", "matches", ["profile_b_id"])

    # ── 5. messages ─────────────────────────────────────────────────
    op.create_table(
        "messages",
        sa.Column(
            "match_id",
            sa.Uuid,
            sa.ForeignKey("matches.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column(
            "sender_id",
            sa.Uuid,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    # Drop in reverse order (children / dependents first).
    op.drop_table("messages")

    op.drop_index("ix_match_profile_b", table_name="matches")
    op.drop_table("matches")

    op.drop_table("swipes")

    op.drop_index("ix_otp_email_issued", table_name="otp_challenges")
    op.drop_table("otp_challenges")

    op.drop_index("ix_profiles_email", table_name="profiles")
    op.drop_table("profiles")
