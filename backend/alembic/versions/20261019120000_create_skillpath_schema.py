"""create skillpath schema

Revision ID: 20261019120000
Revises: 
Create Date: 2026-10-19 12:00:00
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261019120000"
down_revision = None
branch_labels = None
depends_on = None


def _enums():
    return (
        postgresql.ENUM("HARD", "SOFT", "META", name="skill_category", create_type=False),
        postgresql.ENUM("IN_PROGRESS", "COMPLETED", name="assessment_status", create_type=False),
        postgresql.ENUM("PENDING", "IN_PROGRESS", "COMPLETED", name="milestone_status", create_type=False),
        postgresql.ENUM("SELF_REPORTED", "AI_VERIFIED", name="verification_method", create_type=False),
    )


def upgrade() -> None:
    skill_category, assessment_status, milestone_status, verification_method = _enums()
    bind = op.get_bind()
    # Created once up front; verification_method is shared by two tables.
    for enum_type in (skill_category, assessment_status, milestone_status, verification_method):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "skills",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", skill_category, nullable=False),
        sa.Column("difficulty", sa.Integer(), nullable=True),
        sa.Column("assessable", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("name", name="uq_skills_name"),
    )

    op.create_table(
        "assessments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("current_role", sa.String(length=255), nullable=True),
        sa.Column("target_role", sa.String(length=255), nullable=True),
        sa.Column("years_experience", sa.String(length=16), nullable=True),
        sa.Column("career_intent", sa.String(length=32), nullable=True),
        sa.Column("industry", sa.String(length=255), nullable=True),
        sa.Column("status", assessment_status, nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_assessments_user_id", "assessments", ["user_id"], unique=False)
    op.create_index("ix_assessments_status", "assessments", ["status"], unique=False)

    op.create_table(
        "assessment_results",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("assessment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("skill_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("raw_ai_output", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("should_test", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["assessment_id"], ["assessments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["skill_id"], ["skills.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("assessment_id", "skill_id", name="uq_assessment_results_assessment_skill"),
    )
    op.create_index("ix_assessment_results_assessment_id", "assessment_results", ["assessment_id"], unique=False)

    op.create_table(
        "assessment_gaps",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("assessment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("readiness_score", sa.Integer(), nullable=False),
        sa.Column("gaps", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("strengths", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("overall_recommendation", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["assessment_id"], ["assessments.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("assessment_id", name="uq_assessment_gaps_assessment_id"),
    )

    op.create_table(
        "gap_resources",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("gap_snapshot_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("skill_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("skill_name", sa.String(length=255), nullable=False),
        sa.Column("resources", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["gap_snapshot_id"], ["assessment_gaps.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("gap_snapshot_id", "skill_id", name="uq_gap_resources_snapshot_skill"),
    )
    op.create_index("ix_gap_resources_gap_snapshot_id", "gap_resources", ["gap_snapshot_id"], unique=False)

    op.create_table(
        "roadmaps",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("assessment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("total_weeks", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["assessment_id"], ["assessments.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("assessment_id", name="uq_roadmaps_assessment_id"),
    )
    op.create_index("ix_roadmaps_user_id", "roadmaps", ["user_id"], unique=False)
    op.create_index("ix_roadmaps_created_at", "roadmaps", ["created_at"], unique=False)

    op.create_table(
        "roadmap_milestones",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("roadmap_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("skill_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("resources", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", milestone_status, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["roadmap_id"], ["roadmaps.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["skill_id"], ["skills.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_roadmap_milestones_roadmap_id", "roadmap_milestones", ["roadmap_id"], unique=False)

    op.create_table(
        "milestone_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("milestone_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("verification_method", verification_method, nullable=False),
        sa.Column("self_reported_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ai_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ai_verification_score", sa.Float(), nullable=True),
        sa.Column("ai_verification_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["milestone_id"], ["roadmap_milestones.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_milestone_progress_milestone_id", "milestone_progress", ["milestone_id"], unique=False)

    op.create_table(
        "user_skill_history",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("skill_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("source", verification_method, nullable=False),
        sa.Column("assessment_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["skill_id"], ["skills.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assessment_id"], ["assessments.id"], ondelete="SET NULL"),
    )
    op.create_index(
        "ix_user_skill_history_user_skill_created",
        "user_skill_history",
        ["user_id", "skill_id", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_user_skill_history_user_skill_created", table_name="user_skill_history")
    op.drop_table("user_skill_history")

    op.drop_index("ix_milestone_progress_milestone_id", table_name="milestone_progress")
    op.drop_table("milestone_progress")

    op.drop_index("ix_roadmap_milestones_roadmap_id", table_name="roadmap_milestones")
    op.drop_table("roadmap_milestones")

    op.drop_index("ix_roadmaps_created_at", table_name="roadmaps")
    op.drop_index("ix_roadmaps_user_id", table_name="roadmaps")
    op.drop_table("roadmaps")

    op.drop_index("ix_gap_resources_gap_snapshot_id", table_name="gap_resources")
    op.drop_table("gap_resources")

    op.drop_table("assessment_gaps")

    op.drop_index("ix_assessment_results_assessment_id", table_name="assessment_results")
    op.drop_table("assessment_results")

    op.drop_index("ix_assessments_status", table_name="assessments")
    op.drop_index("ix_assessments_user_id", table_name="assessments")
    op.drop_table("assessments")

    op.drop_table("skills")

    bind = op.get_bind()
    for enum_type in reversed(_enums()):
        enum_type.drop(bind, checkfirst=True)
