"""Initial schema

Revision ID: 0001a2b3c4d5
Revises:
Create Date: 2026-10-19

Creates the squad-health tables:
- users, profiles (people and roles)
- teams, team_players, staff_assignments (roster)
- player_metrics (physiological samples)
- training_programs, assessment_requests (care workflow)
- conversations, messages (direct messaging)
- notifications (inbox)
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001a2b3c4d5"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    # Timestamps from TimestampMixin
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def _user_fk(column: str, *, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(
        column,
        sa.Integer(),
        sa.ForeignKey("users.id", ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=True),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_role"), "users", ["role"], unique=False)
    op.create_index(op.f("ix_users_created_at"), "users", ["created_at"], unique=False)

    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("sex", sa.String(length=20), nullable=True),
        sa.Column("position", sa.String(length=100), nullable=True),
        sa.Column("blood_type", sa.String(length=5), nullable=True),
        sa.Column("avatar_url", sa.String(length=500), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_profiles_created_at"), "profiles", ["created_at"], unique=False)

    # Roster
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        _user_fk("coach_id", nullable=True, ondelete="SET NULL"),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_teams_coach_id"), "teams", ["coach_id"], unique=False)
    op.create_index(op.f("ix_teams_created_at"), "teams", ["created_at"], unique=False)

    op.create_table(
        "team_players",
        sa.Column(
            "team_id",
            sa.Integer(),
            sa.ForeignKey("teams.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "player_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "staff_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk("player_id"),
        _user_fk("staff_id"),
        sa.Column("role", sa.String(length=20), nullable=False, comment="coach or doctor"),
        *_timestamps(),
        sa.UniqueConstraint("player_id", "role", name="uq_staff_assignment_player_role"),
    )
    op.create_index(
        op.f("ix_staff_assignments_player_id"), "staff_assignments", ["player_id"], unique=False
    )
    op.create_index(
        op.f("ix_staff_assignments_staff_id"), "staff_assignments", ["staff_id"], unique=False
    )
    op.create_index(
        op.f("ix_staff_assignments_created_at"), "staff_assignments", ["created_at"], unique=False
    )

    op.create_table(
        "player_metrics",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk("player_id"),
        # Core readings
        sa.Column("resting_hr", sa.Integer(), nullable=False, comment="bpm"),
        sa.Column("max_hr", sa.Integer(), nullable=False, comment="bpm"),
        sa.Column("hrv", sa.Float(), nullable=False, comment="ms"),
        sa.Column("vo2_max", sa.Float(), nullable=False, comment="ml/kg/min"),
        sa.Column("weight", sa.Float(), nullable=False, comment="kg"),
        sa.Column("reaction_time", sa.Float(), nullable=False, comment="ms"),
        # Performance context
        sa.Column("match_consistency", sa.Float(), nullable=True, comment="0-100 scale"),
        sa.Column("minutes_played", sa.Integer(), nullable=True),
        sa.Column("training_hours", sa.Integer(), nullable=True, comment="Weekly training hours"),
        sa.Column("injury_frequency", sa.Float(), nullable=True, comment="Injuries per 1000 mins"),
        sa.Column("recovery_time", sa.Float(), nullable=True, comment="0-100 scale"),
        # Derived scores
        sa.Column("fatigue_score", sa.Float(), nullable=True, comment="0-100 scale"),
        sa.Column("injury_risk", sa.Float(), nullable=True, comment="0-100%"),
        sa.Column("readiness_score", sa.Float(), nullable=True, comment="0-100 scale"),
        sa.Column("recorded_at", sa.Date(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        op.f("ix_player_metrics_player_id"), "player_metrics", ["player_id"], unique=False
    )
    op.create_index(
        op.f("ix_player_metrics_created_at"), "player_metrics", ["created_at"], unique=False
    )
    op.create_index(
        "ix_player_metrics_player_recorded",
        "player_metrics",
        ["player_id", "recorded_at"],
        unique=False,
    )

    # Care workflow
    op.create_table(
        "training_programs",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk("player_id"),
        _user_fk("doctor_id"),
        sa.Column("exercises", sa.JSON(), nullable=False),
        sa.Column("focus_area", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("ai_generated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        op.f("ix_training_programs_player_id"), "training_programs", ["player_id"], unique=False
    )
    op.create_index(
        op.f("ix_training_programs_doctor_id"), "training_programs", ["doctor_id"], unique=False
    )
    op.create_index(
        op.f("ix_training_programs_created_at"), "training_programs", ["created_at"], unique=False
    )

    op.create_table(
        "assessment_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk("player_id"),
        _user_fk("doctor_id"),
        sa.Column("issue_type", sa.String(length=20), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk("approved_by", nullable=True, ondelete="SET NULL"),
        *_timestamps(),
    )
    op.create_index(
        op.f("ix_assessment_requests_player_id"), "assessment_requests", ["player_id"], unique=False
    )
    op.create_index(
        op.f("ix_assessment_requests_doctor_id"), "assessment_requests", ["doctor_id"], unique=False
    )
    op.create_index(
        op.f("ix_assessment_requests_status"), "assessment_requests", ["status"], unique=False
    )
    op.create_index(
        op.f("ix_assessment_requests_created_at"),
        "assessment_requests",
        ["created_at"],
        unique=False,
    )
    # One approved assessment per doctor and slot
    op.create_index(
        "uq_assessment_doctor_slot_approved",
        "assessment_requests",
        ["doctor_id", "requested_at"],
        unique=True,
        postgresql_where=sa.text("status = 'approved'"),
        sqlite_where=sa.text("status = 'approved'"),
    )

    # Messaging
    op.create_table(
        "conversations",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk("user_id"),
        _user_fk("participant_id"),
        sa.Column("last_message_id", sa.Integer(), nullable=True),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "participant_id", name="uq_conversation_pair"),
    )
    op.create_index(
        op.f("ix_conversations_user_id"), "conversations", ["user_id"], unique=False
    )
    op.create_index(
        op.f("ix_conversations_participant_id"), "conversations", ["participant_id"], unique=False
    )
    op.create_index(
        op.f("ix_conversations_created_at"), "conversations", ["created_at"], unique=False
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "conversation_id",
            sa.Integer(),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("sender_id"),
        _user_fk("recipient_id"),
        sa.Column("type", sa.String(length=10), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("file_url", sa.String(length=500), nullable=True),
        sa.Column("reaction", sa.String(length=16), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="sent"),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        op.f("ix_messages_conversation_id"), "messages", ["conversation_id"], unique=False
    )
    op.create_index(op.f("ix_messages_sender_id"), "messages", ["sender_id"], unique=False)
    op.create_index(op.f("ix_messages_recipient_id"), "messages", ["recipient_id"], unique=False)
    op.create_index(op.f("ix_messages_created_at"), "messages", ["created_at"], unique=False)

    # conversations <-> messages cycle
    op.create_foreign_key(
        "fk_conversations_last_message_id",
        "conversations",
        "messages",
        ["last_message_id"],
        ["id"],
        ondelete="SET NULL",
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk("user_id"),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        _user_fk("sender_id", nullable=True),
        sa.Column(
            "related_program_id",
            sa.Integer(),
            sa.ForeignKey("training_programs.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "related_assessment_id",
            sa.Integer(),
            sa.ForeignKey("assessment_requests.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "related_message_id",
            sa.Integer(),
            sa.ForeignKey("messages.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index(op.f("ix_notifications_user_id"), "notifications", ["user_id"], unique=False)
    op.create_index(
        op.f("ix_notifications_created_at"), "notifications", ["created_at"], unique=False
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("notifications")
    op.drop_constraint("fk_conversations_last_message_id", "conversations", type_="foreignkey")
    op.drop_table("messages")
    op.drop_table("conversations")
    op.drop_table("assessment_requests")
    op.drop_table("training_programs")
    op.drop_table("player_metrics")
    op.drop_table("staff_assignments")
    op.drop_table("team_players")
    op.drop_table("teams")
    op.drop_table("profiles")
    op.drop_table("users")
