"""initial_social_graph

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("display_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("photo_url", sa.String(), nullable=True),
        sa.Column("is_moderator", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    op.create_table(
        "userfollow",
        sa.Column("follower_id", sa.String(), sa.ForeignKey("user.id"), primary_key=True),
        sa.Column("followed_id", sa.String(), sa.ForeignKey("user.id"), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_userfollow_follower_id", "userfollow", ["follower_id"])
    op.create_index("ix_userfollow_followed_id", "userfollow", ["followed_id"])

    op.create_table(
        "followintent",
        sa.Column("user_id", sa.String(), sa.ForeignKey("user.id"), primary_key=True),
        sa.Column("email", sa.String(length=320), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_followintent_email", "followintent", ["email"])
    op.create_index("ix_followintent_resolved_at", "followintent", ["resolved_at"])

    op.create_table(
        "photo",
        sa.Column("id", sa.String(length=300), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("date", sa.Integer(), nullable=False),
        sa.Column("flagged", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_photo_user_id", "photo", ["user_id"])
    op.create_index("ix_photo_date", "photo", ["date"])
    op.create_index("ix_photo_flagged", "photo", ["flagged"])
    op.create_index("ix_photo_user_id_date", "photo", ["user_id", "date"])

    op.create_table(
        "photolike",
        sa.Column("photo_id", sa.String(), sa.ForeignKey("photo.id"), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("user.id"), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_photolike_user_id", "photolike", ["user_id"])

    op.create_table(
        "photocomment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("photo_id", sa.String(), sa.ForeignKey("photo.id"), nullable=False),
        sa.Column("person_id", sa.String(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("text", sa.String(length=1000), nullable=False),
        sa.Column("time", sa.Integer(), nullable=False),
    )
    op.create_index("ix_photocomment_photo_id", "photocomment", ["photo_id"])
    op.create_index("ix_photocomment_person_id", "photocomment", ["person_id"])
    op.create_index("ix_photocomment_time", "photocomment", ["time"])

    op.create_table(
        "photoflag",
        sa.Column("photo_id", sa.String(), sa.ForeignKey("photo.id"), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("user.id"), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "photoreview",
        sa.Column("photo_id", sa.String(), sa.ForeignKey("photo.id"), primary_key=True),
        sa.Column("moderator_id", sa.String(), sa.ForeignKey("user.id"), primary_key=True),
        sa.Column("approved", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "notification",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("recipient_id", sa.String(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("actor_id", sa.String(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("type", sa.Enum("NEW_FOLLOWER", name="notificationtype"), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notification_recipient_id", "notification", ["recipient_id"])

    op.create_table(
        "deferredtask",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "RUNNING", "DONE", "FAILED", name="taskstatus"),
            nullable=False,
        ),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.String(), nullable=True),
        sa.Column("available_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_deferredtask_status_available_at", "deferredtask", ["status", "available_at"]
    )


def downgrade() -> None:
    op.drop_table("deferredtask")
    op.execute("DROP TYPE IF EXISTS taskstatus")
    op.drop_table("notification")
    op.execute("DROP TYPE IF EXISTS notificationtype")
    op.drop_table("photoreview")
    op.drop_table("photoflag")
    op.drop_table("photocomment")
    op.drop_table("photolike")
    op.drop_table("photo")
    op.drop_table("followintent")
    op.drop_table("userfollow")
    op.drop_table("user")
