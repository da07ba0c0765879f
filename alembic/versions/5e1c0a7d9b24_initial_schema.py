"""Initial schema: users, comments, notification events, tracking, flags

Revision ID: 5e1c0a7d9b24
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "5e1c0a7d9b24"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("full_name", sa.String(200), nullable=False, server_default=""),
        sa.Column("username", sa.String(28), nullable=False, unique=True),
        sa.Column("email", sa.String(254), nullable=True, unique=True),
        sa.Column("bio", sa.Text(), nullable=False, server_default=""),
        sa.Column("avatar_url", sa.String(500), nullable=False, server_default=""),
        sa.Column("address", sa.String(100), nullable=True, unique=True),
        sa.Column("user_group", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("invites_left", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_authenticated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("meta", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "comments",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("parent_id", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("claim_id", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("community_id", sa.String(100), nullable=False, server_default=""),
        sa.Column("argument_id", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("element_id", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("creator", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_comments_claim", "comments", ["claim_id"])
    op.create_index("ix_comments_argument_element", "comments", ["argument_id", "element_id"])

    op.create_table(
        "notification_events",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("address", sa.String(100), nullable=False),
        sa.Column("user_profile_id", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("sender_profile_id", sa.BigInteger(), nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("type_id", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("meta", postgresql.JSONB(), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("seen", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_notification_events_address_time", "notification_events", ["address", "timestamp"]
    )

    op.create_table(
        "track_events",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("address", sa.String(100), nullable=True),
        sa.Column("session_id", sa.String(100), nullable=False),
        sa.Column("claim_id", sa.BigInteger(), nullable=False),
        sa.Column("argument_id", sa.BigInteger(), nullable=True),
        sa.Column("community_id", sa.String(100), nullable=False, server_default=""),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_track_events_claim_time", "track_events", ["claim_id", "created_at"])
    op.create_index("ix_track_events_address_time", "track_events", ["address", "created_at"])

    op.create_table(
        "flagged_claims",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("claim_id", sa.BigInteger(), nullable=False),
        sa.Column("creator", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_flagged_claims_claim", "flagged_claims", ["claim_id"])


def downgrade() -> None:
    op.drop_index("ix_flagged_claims_claim", table_name="flagged_claims")
    op.drop_table("flagged_claims")
    op.drop_index("ix_track_events_address_time", table_name="track_events")
    op.drop_index("ix_track_events_claim_time", table_name="track_events")
    op.drop_table("track_events")
    op.drop_index("ix_notification_events_address_time", table_name="notification_events")
    op.drop_table("notification_events")
    op.drop_index("ix_comments_argument_element", table_name="comments")
    op.drop_index("ix_comments_claim", table_name="comments")
    op.drop_table("comments")
    op.drop_table("users")
