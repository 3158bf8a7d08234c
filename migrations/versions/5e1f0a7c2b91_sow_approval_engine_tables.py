"""sow_approval_engine_tables

Create the stakeholder directory, SOW section approval, approval workflow
and question assignment tables.

Revision ID: 5e1f0a7c2b91
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5e1f0a7c2b91"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "stakeholders" not in existing_tables:
        op.create_table(
            "stakeholders",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False, server_default=""),
            sa.Column("role", sa.String(length=200), nullable=False, server_default=""),
            sa.Column("team_id", sa.Integer(), nullable=True),
            sa.Column("department", sa.String(length=200), nullable=True),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("reports_to_id", sa.Integer(), nullable=True),
            sa.Column("knowledge_areas", sa.JSON(), nullable=False),
            sa.Column("specializations", sa.JSON(), nullable=False),
            sa.Column("responsibilities", sa.JSON(), nullable=False),
            sa.Column("can_approve", sa.JSON(), nullable=False),
            sa.Column("involvement_level", sa.String(length=20), nullable=True),
            sa.Column("availability_hours", sa.Float(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["reports_to_id"], ["stakeholders.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_stakeholders_project_id", "stakeholders", ["project_id"])
        op.create_index("ix_stakeholders_team_id", "stakeholders", ["team_id"])
        op.create_index("ix_stakeholders_project_role", "stakeholders", ["project_id", "role"])

    if "section_approvals" not in existing_tables:
        op.create_table(
            "section_approvals",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("assessment_id", sa.Integer(), nullable=False),
            sa.Column("section_name", sa.String(length=200), nullable=False),
            sa.Column("approval_required", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("required_approvers", sa.JSON(), nullable=False),
            sa.Column("decisions", sa.JSON(), nullable=False),
            sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("finalized_by", sa.Integer(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "project_id", "assessment_id", "section_name",
                name="uq_section_approval_scope_name",
            ),
        )
        op.create_index("ix_section_approvals_project_id", "section_approvals", ["project_id"])
        op.create_index("ix_section_approvals_assessment_id", "section_approvals", ["assessment_id"])
        op.create_index("ix_section_approvals_scope", "section_approvals", ["project_id", "assessment_id"])

    if "approval_workflows" not in existing_tables:
        op.create_table(
            "approval_workflows",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("assessment_id", sa.Integer(), nullable=False),
            sa.Column("steps", sa.JSON(), nullable=False),
            sa.Column("current_step", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("overall_status", sa.String(length=20), nullable=False, server_default="not_started"),
            sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_approval_workflows_project_id", "approval_workflows", ["project_id"])
        op.create_index("ix_approval_workflows_assessment_id", "approval_workflows", ["assessment_id"])
        op.create_index("ix_approval_workflows_scope", "approval_workflows", ["project_id", "assessment_id"])

    if "question_stakeholder_assignments" not in existing_tables:
        op.create_table(
            "question_stakeholder_assignments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("assessment_id", sa.Integer(), nullable=False),
            sa.Column("question_id", sa.String(length=100), nullable=False),
            sa.Column("phase", sa.String(length=20), nullable=False),
            sa.Column("tier", sa.String(length=10), nullable=False),
            sa.Column("has_knowledge", sa.JSON(), nullable=False),
            sa.Column("responsible", sa.JSON(), nullable=False),
            sa.Column("accountable", sa.Integer(), nullable=True),
            sa.Column("consulted", sa.JSON(), nullable=False),
            sa.Column("informed", sa.JSON(), nullable=False),
            sa.Column("must_approve", sa.JSON(), nullable=False),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "project_id", "assessment_id", "question_id",
                name="uq_question_assignment_scope_question",
            ),
        )
        op.create_index(
            "ix_question_stakeholder_assignments_project_id",
            "question_stakeholder_assignments", ["project_id"],
        )
        op.create_index(
            "ix_question_stakeholder_assignments_assessment_id",
            "question_stakeholder_assignments", ["assessment_id"],
        )


def downgrade():
    op.drop_table("question_stakeholder_assignments")
    op.drop_table("approval_workflows")
    op.drop_table("section_approvals")
    op.drop_table("stakeholders")
