"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

Tables created:
- accounts, home_locations
- members (member_status_enum)
- alerts (alert_type_enum)
- revoked_tracking_tokens
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

member_status_enum = sa.Enum("inside", "outside", "unknown", name="member_status_enum")
alert_type_enum = sa.Enum("entered", "exited", name="alert_type_enum")


def upgrade() -> None:
    """Create all tables for the geofencing service."""
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("api_key_hash", sa.String(64), nullable=False, unique=True),
        sa.Column("notification_email", sa.String(320), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "home_locations",
        sa.Column(
            "account_id",
            sa.String(36),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("address", sa.String(500), nullable=False, server_default=""),
        sa.Column("radius_m", sa.Float(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("lat >= -90 AND lat <= 90", name="ck_home_locations_lat_range"),
        sa.CheckConstraint("lng >= -180 AND lng <= 180", name="ck_home_locations_lng_range"),
        sa.CheckConstraint("radius_m > 0", name="ck_home_locations_radius_positive"),
    )

    op.create_table(
        "members",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "account_id",
            sa.String(36),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("relation", sa.String(100), nullable=True),
        sa.Column("tracking_token", sa.String(128), nullable=False, unique=True),
        sa.Column("status", member_status_enum, nullable=False, server_default="unknown"),
        sa.Column("last_lat", sa.Float(), nullable=True),
        sa.Column("last_lng", sa.Float(), nullable=True),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_members_account_id", "members", ["account_id"])
    op.create_index("idx_members_account_status", "members", ["account_id", "status"])

    op.create_table(
        "alerts",
        sa.Column("seq", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(36), nullable=False, unique=True),
        sa.Column(
            "account_id",
            sa.String(36),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        # Not a foreign key: alerts outlive their member
        sa.Column("member_id", sa.String(36), nullable=False),
        sa.Column("member_name", sa.String(255), nullable=False),
        sa.Column("type", alert_type_enum, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("distance_m", sa.Float(), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("idx_alerts_account_timestamp", "alerts", ["account_id", "timestamp"])
    op.create_index("idx_alerts_member_id", "alerts", ["member_id"])

    op.create_table(
        "revoked_tracking_tokens",
        sa.Column("token_hash", sa.String(64), primary_key=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("revoked_tracking_tokens")
    op.drop_index("idx_alerts_member_id", table_name="alerts")
    op.drop_index("idx_alerts_account_timestamp", table_name="alerts")
    op.drop_table("alerts")
    op.drop_index("idx_members_account_status", table_name="members")
    op.drop_index("idx_members_account_id", table_name="members")
    op.drop_table("members")
    op.drop_table("home_locations")
    op.drop_table("accounts")
    alert_type_enum.drop(op.get_bind(), checkfirst=True)
    member_status_enum.drop(op.get_bind(), checkfirst=True)
