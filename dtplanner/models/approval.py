"""
SOW section sign-off and sequential approval workflow models.

SectionApproval
    One row per SOW section per (project, assessment). Holds the set of
    required approvers and the live decision of every stakeholder who has
    weighed in. The aggregate ``status`` is not stored: it is derived on
    every read from ``required_approvers`` and ``decisions`` so it can never
    drift from them.

ApprovalWorkflow
    An ordered list of named steps with a 1-based ``current_step`` pointer.

Both tables carry a ``version`` column wired as SQLAlchemy's
``version_id_col``: every UPDATE is issued as ``... WHERE version = :read``,
so a write racing another write to the same row fails with
``StaleDataError`` instead of silently losing an update.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Iterable

from dtplanner.models import db


class ApprovalStatus(str, Enum):
    """Aggregate status of a SOW section."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CHANGES_REQUESTED = "changes_requested"


class DecisionStatus(str, Enum):
    """What an individual stakeholder can say about a section."""
    APPROVED = "approved"
    REJECTED = "rejected"
    CHANGES_REQUESTED = "changes_requested"


class StepStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class WorkflowStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


VALID_DECISION_STATUSES = frozenset(s.value for s in DecisionStatus)

# Decisions that must carry a rationale
RATIONALE_REQUIRED = frozenset({DecisionStatus.REJECTED.value, DecisionStatus.CHANGES_REQUESTED.value})


def derive_section_status(
    required_approvers: Iterable[int],
    decisions: Iterable[dict],
) -> ApprovalStatus:
    """Compute a section's aggregate status from its live decisions.

    Precedence:
      1. any ``rejected`` decision            → rejected
      2. any ``changes_requested`` decision   → changes_requested
      3. every required approver ``approved`` → approved (vacuously true
         when nobody is required)
      4. otherwise                            → pending

    Decisions from stakeholders outside ``required_approvers`` count toward
    rules 1 and 2 but cannot satisfy rule 3 on anyone else's behalf.
    """
    decisions = list(decisions or [])
    statuses = {d.get("status") for d in decisions}
    if DecisionStatus.REJECTED.value in statuses:
        return ApprovalStatus.REJECTED
    if DecisionStatus.CHANGES_REQUESTED.value in statuses:
        return ApprovalStatus.CHANGES_REQUESTED
    approved_ids = {
        d.get("stakeholder_id") for d in decisions
        if d.get("status") == DecisionStatus.APPROVED.value
    }
    if all(sid in approved_ids for sid in (required_approvers or [])):
        return ApprovalStatus.APPROVED
    return ApprovalStatus.PENDING


class SectionApproval(db.Model):
    """Sign-off state of one SOW section for one (project, assessment) pair.

    Business rules:
    - section_name is unique within (project_id, assessment_id).
    - decisions holds at most one entry per stakeholder; a resubmission
      replaces the earlier entry.
    - finalized_at / finalized_by are set when the derived status turns
      approved and cleared when it leaves approved.
    - required_approvers and decisions are JSON arrays and are always
      reassigned, never mutated in place, so change tracking sees them.
    """

    __tablename__ = "section_approvals"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, nullable=False, index=True)
    assessment_id = db.Column(db.Integer, nullable=False, index=True)
    section_name = db.Column(db.String(200), nullable=False)

    approval_required = db.Column(db.Boolean, nullable=False, default=True)
    required_approvers = db.Column(
        db.JSON, nullable=False, default=list, comment="Stakeholder ids",
    )
    decisions = db.Column(
        db.JSON,
        nullable=False,
        default=list,
        comment="[{stakeholder_id, status, comments, decided_at}]",
    )

    finalized_at = db.Column(db.DateTime(timezone=True), nullable=True)
    finalized_by = db.Column(db.Integer, nullable=True, comment="Stakeholder id")

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "project_id", "assessment_id", "section_name",
            name="uq_section_approval_scope_name",
        ),
        db.Index("ix_section_approvals_scope", "project_id", "assessment_id"),
    )
    __mapper_args__ = {"version_id_col": version}

    @property
    def status(self) -> ApprovalStatus:
        return derive_section_status(self.required_approvers, self.decisions)

    def approved_stakeholder_ids(self) -> set[int]:
        return {
            d["stakeholder_id"] for d in (self.decisions or [])
            if d.get("status") == DecisionStatus.APPROVED.value
        }

    def pending_approver_ids(self) -> list[int]:
        """Required approvers without a live ``approved`` decision, in order."""
        approved = self.approved_stakeholder_ids()
        return [sid for sid in (self.required_approvers or []) if sid not in approved]

    def decision_for(self, stakeholder_id: int) -> dict | None:
        for d in self.decisions or []:
            if d.get("stakeholder_id") == stakeholder_id:
                return d
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "assessment_id": self.assessment_id,
            "section_name": self.section_name,
            "approval_required": self.approval_required,
            "required_approvers": list(self.required_approvers or []),
            "decisions": [dict(d) for d in (self.decisions or [])],
            "status": self.status.value,
            "finalized_at": self.finalized_at.isoformat() if self.finalized_at else None,
            "finalized_by": self.finalized_by,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<SectionApproval #{self.id} {self.section_name!r} {self.status.value}>"


class ApprovalWorkflow(db.Model):
    """Ordered, step-by-step sign-off route for a SOW.

    steps JSON layout (one dict per step):
        {step_number, step_name, description, required_approvers: [int],
         parallel_approval: bool, status: pending|approved,
         approvals: [int], approved_at, approved_by}

    Invariant: current_step points at the first non-approved step, or at
    len(steps) + 1 once overall_status is completed.
    """

    __tablename__ = "approval_workflows"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, nullable=False, index=True)
    assessment_id = db.Column(db.Integer, nullable=False, index=True)

    steps = db.Column(db.JSON, nullable=False, default=list)
    current_step = db.Column(db.Integer, nullable=False, default=1)
    overall_status = db.Column(
        db.String(20),
        nullable=False,
        default=WorkflowStatus.NOT_STARTED.value,
        comment="not_started | in_progress | completed",
    )
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_approval_workflows_scope", "project_id", "assessment_id"),
    )
    __mapper_args__ = {"version_id_col": version}

    @property
    def is_completed(self) -> bool:
        return self.overall_status == WorkflowStatus.COMPLETED.value

    def active_step(self) -> dict | None:
        """The step ``current_step`` points at, or None once completed."""
        steps = self.steps or []
        if 1 <= self.current_step <= len(steps):
            return steps[self.current_step - 1]
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "assessment_id": self.assessment_id,
            "steps": [dict(s) for s in (self.steps or [])],
            "current_step": self.current_step,
            "overall_status": self.overall_status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<ApprovalWorkflow #{self.id} step={self.current_step} {self.overall_status}>"
