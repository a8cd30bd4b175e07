"""
Инициальная миграция.

Создаёт таблицы:
- users, posts
- meetings (+ частичный уникальный индекс активного слота владельца)
- messages
- notifications
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

_ACTIVE_SLOT_WHERE = sa.text("status IN ('pending', 'accepted')")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("profile_picture", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "posts",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("author_id", sa.String(length=64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "meetings",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("post_id", sa.String(length=64), sa.ForeignKey("posts.id"), nullable=False),
        sa.Column("requester_id", sa.String(length=64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "post_owner_id", sa.String(length=64), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("scheduled_time", sa.String(length=5), nullable=False),
        sa.Column(
            "meeting_type",
            sa.Enum("virtual", "in-person", name="meetingtype"),
            nullable=False,
        ),
        sa.Column("meeting_link", sa.String(length=500), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "accepted", "rejected", "cancelled", name="meetingstatus"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder5_sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_meetings_post_requester", "meetings", ["post_id", "requester_id"])
    op.create_index("ix_meetings_owner_status", "meetings", ["post_owner_id", "status"])
    op.create_index("ix_meetings_scheduled_date", "meetings", ["scheduled_date"])
    op.create_index(
        "ux_meetings_owner_active_slot",
        "meetings",
        ["post_owner_id", "scheduled_date", "scheduled_time"],
        unique=True,
        postgresql_where=_ACTIVE_SLOT_WHERE,
        sqlite_where=_ACTIVE_SLOT_WHERE,
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("sender_id", sa.String(length=64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("recipient_id", sa.String(length=64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("participant_low", sa.String(length=64), nullable=False),
        sa.Column("participant_high", sa.String(length=64), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_messages_sender_id", "messages", ["sender_id"])
    op.create_index("ix_messages_recipient_id", "messages", ["recipient_id"])
    op.create_index(
        "ix_messages_pair_created",
        "messages",
        ["participant_low", "participant_high", "created_at"],
    )
    op.create_index(
        "ix_messages_sender_recipient_created",
        "messages",
        ["sender_id", "recipient_id", "created_at"],
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("user_id", sa.String(length=64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("from_user_id", sa.String(length=64), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "meeting_id", sa.String(length=64), sa.ForeignKey("meetings.id"), nullable=True
        ),
        sa.Column("read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_messages_sender_recipient_created", table_name="messages")
    op.drop_index("ix_messages_pair_created", table_name="messages")
    op.drop_index("ix_messages_recipient_id", table_name="messages")
    op.drop_index("ix_messages_sender_id", table_name="messages")
    op.drop_table("messages")

    op.drop_index("ux_meetings_owner_active_slot", table_name="meetings")
    op.drop_index("ix_meetings_scheduled_date", table_name="meetings")
    op.drop_index("ix_meetings_owner_status", table_name="meetings")
    op.drop_index("ix_meetings_post_requester", table_name="meetings")
    op.drop_table("meetings")

    op.drop_table("posts")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS meetingstatus")
    op.execute("DROP TYPE IF EXISTS meetingtype")
