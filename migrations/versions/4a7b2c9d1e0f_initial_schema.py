"""initial schema: users, audit, profiles, nominations, bosses, outbox

Revision ID: 4a7b2c9d1e0f
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "4a7b2c9d1e0f"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    def _has_index(table: str, name: str) -> bool:
        try:
            return any(ix.get("name") == name for ix in inspect(op.get_bind()).get_indexes(table))
        except Exception:
            return False

    def _ensure_indexes(table: str, specs) -> None:
        for idx_name, cols, unique in specs:
            if not _has_index(table, idx_name):
                op.create_index(idx_name, table, cols, unique=unique)

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(length=320), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("email_confirmed_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.UniqueConstraint("email", name="uq_users_email"),
        )

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.Column("request_id", sa.String(length=64), nullable=True),
            sa.Column("client_ip", sa.String(length=64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), nullable=True),
            sa.Column("actor_user_email", sa.String(length=320), nullable=True),
            sa.Column("action", sa.String(length=128), nullable=False),
            sa.Column("entity_type", sa.String(length=128), nullable=True),
            sa.Column("entity_id", sa.String(length=128), nullable=True),
            sa.Column("reason", sa.String(length=512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
            sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
        )

    if "profiles" not in existing_tables:
        op.create_table(
            "profiles",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("first_name", sa.String(length=128), nullable=False, server_default=""),
            sa.Column("last_name", sa.String(length=128), nullable=False, server_default=""),
            sa.Column("email", sa.String(length=320), nullable=False),
            sa.Column("linkedin_profile", sa.String(length=512), nullable=False, server_default=""),
            sa.Column("has_approved_nomination", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        )
    _ensure_indexes("profiles", [("idx_profiles_user_id", ["user_id"], True)])

    if "nominations" not in existing_tables:
        op.create_table(
            "nominations",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("boss_first_name", sa.String(length=128), nullable=False),
            sa.Column("boss_last_name", sa.String(length=128), nullable=False),
            sa.Column("company", sa.String(length=255), nullable=False),
            sa.Column("location", sa.String(length=255), nullable=False),
            sa.Column("industry", sa.String(length=128), nullable=False),
            sa.Column("function", sa.String(length=128), nullable=False),
            sa.Column("email", sa.String(length=320), nullable=False),
            sa.Column("linkedin_profile", sa.String(length=512), nullable=False),
            sa.Column("review", sa.Text(), nullable=False),
            sa.Column("nominator_id", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
            sa.Column("reviewed_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("reviewed_by_user_id", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["nominator_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["reviewed_by_user_id"], ["users.id"], ondelete="SET NULL"),
            sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_nominations_status"),
        )
    _ensure_indexes(
        "nominations",
        [
            ("idx_nominations_status", ["status"], False),
            ("idx_nominations_nominator_id", ["nominator_id"], False),
            ("idx_nominations_created_at", ["created_at"], False),
        ],
    )

    if "bosses" not in existing_tables:
        op.create_table(
            "bosses",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("nomination_id", sa.Integer(), nullable=False),
            sa.Column("first_name", sa.String(length=128), nullable=False),
            sa.Column("last_name", sa.String(length=128), nullable=False),
            sa.Column("company", sa.String(length=255), nullable=False),
            sa.Column("location", sa.String(length=255), nullable=False),
            sa.Column("industry", sa.String(length=128), nullable=False),
            sa.Column("function", sa.String(length=128), nullable=False),
            sa.Column("email", sa.String(length=320), nullable=False),
            sa.Column("linkedin_profile", sa.String(length=512), nullable=False),
            sa.Column("review", sa.Text(), nullable=False),
            sa.Column("nominator_id", sa.Integer(), nullable=False),
            sa.Column("slug", sa.String(length=600), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["nomination_id"], ["nominations.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["nominator_id"], ["users.id"], ondelete="CASCADE"),
        )
    _ensure_indexes(
        "bosses",
        [
            ("idx_bosses_slug", ["slug"], True),
            ("idx_bosses_nomination_id", ["nomination_id"], True),
            ("idx_bosses_created_at", ["created_at"], False),
        ],
    )

    if "notification_outbox" not in existing_tables:
        op.create_table(
            "notification_outbox",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("kind", sa.String(length=64), nullable=False),
            sa.Column("recipient", sa.String(length=320), nullable=False),
            sa.Column("payload_json", sa.Text(), nullable=False, server_default="{}"),
            sa.Column("nomination_id", sa.Integer(), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
            sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_error", sa.String(length=1024), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.Column("sent_at", sa.DateTime(timezone=False), nullable=True),
            sa.ForeignKeyConstraint(["nomination_id"], ["nominations.id"], ondelete="SET NULL"),
        )
    _ensure_indexes(
        "notification_outbox",
        [
            ("idx_notification_outbox_status", ["status"], False),
            ("idx_notification_outbox_nomination_id", ["nomination_id"], False),
        ],
    )


def downgrade() -> None:
    op.drop_index("idx_notification_outbox_nomination_id", table_name="notification_outbox")
    op.drop_index("idx_notification_outbox_status", table_name="notification_outbox")
    op.drop_table("notification_outbox")

    op.drop_index("idx_bosses_created_at", table_name="bosses")
    op.drop_index("idx_bosses_nomination_id", table_name="bosses")
    op.drop_index("idx_bosses_slug", table_name="bosses")
    op.drop_table("bosses")

    op.drop_index("idx_nominations_created_at", table_name="nominations")
    op.drop_index("idx_nominations_nominator_id", table_name="nominations")
    op.drop_index("idx_nominations_status", table_name="nominations")
    op.drop_table("nominations")

    op.drop_index("idx_profiles_user_id", table_name="profiles")
    op.drop_table("profiles")

    op.drop_table("audit_events")
    op.drop_table("users")
