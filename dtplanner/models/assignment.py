"""Per-question RACI pre-selection produced by the auto-assignment service."""

from datetime import datetime, timezone

from dtplanner.models import db


class QuestionStakeholderAssignment(db.Model):
    """Who answers, owns, advises on and signs off one interview question.

    question_id refers to the external question catalogue (string ids such
    as "DISC-DATA-004"); it is not a foreign key.
    """

    __tablename__ = "question_stakeholder_assignments"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, nullable=False, index=True)
    assessment_id = db.Column(db.Integer, nullable=False, index=True)
    question_id = db.Column(db.String(100), nullable=False)
    phase = db.Column(db.String(20), nullable=False)
    tier = db.Column(db.String(10), nullable=False)

    has_knowledge = db.Column(db.JSON, nullable=False, default=list)
    responsible = db.Column(db.JSON, nullable=False, default=list)
    accountable = db.Column(db.Integer, nullable=True, comment="Stakeholder id")
    consulted = db.Column(db.JSON, nullable=False, default=list)
    informed = db.Column(db.JSON, nullable=False, default=list)
    must_approve = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "project_id", "assessment_id", "question_id",
            name="uq_question_assignment_scope_question",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "assessment_id": self.assessment_id,
            "question_id": self.question_id,
            "phase": self.phase,
            "tier": self.tier,
            "has_knowledge": list(self.has_knowledge or []),
            "responsible": list(self.responsible or []),
            "accountable": self.accountable,
            "consulted": list(self.consulted or []),
            "informed": list(self.informed or []),
            "must_approve": list(self.must_approve or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
