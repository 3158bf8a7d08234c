"""
Stakeholder directory model.

Stakeholders are owned by the project's team-management screens; the
approval engine only reads them. The tag lists (knowledge areas,
specializations, responsibilities, approval authorities) are free-form JSON
arrays matched heuristically by the suggestion and auto-assignment services.
"""

from datetime import datetime, timezone
from enum import Enum

from dtplanner.models import db


class Tier(str, Enum):
    """Technology tier an interview question (or an expert) belongs to."""
    UI = "UI"
    API = "API"
    DATA = "DATA"
    CLOUD = "CLOUD"
    AI = "AI"


class Phase(str, Enum):
    """Transformation phase an interview question is asked in."""
    DISCOVERY = "DISCOVERY"
    FOUNDATION = "FOUNDATION"
    MODERNIZATION = "MODERNIZATION"
    INTELLIGENCE = "INTELLIGENCE"
    OPTIMIZATION = "OPTIMIZATION"


class InvolvementLevel(str, Enum):
    """RACI-style default involvement, plus the APPROVER gate role."""
    RESPONSIBLE = "RESPONSIBLE"
    ACCOUNTABLE = "ACCOUNTABLE"
    CONSULTED = "CONSULTED"
    INFORMED = "INFORMED"
    APPROVER = "APPROVER"


VALID_TIERS = frozenset(t.value for t in Tier)
VALID_PHASES = frozenset(p.value for p in Phase)
VALID_INVOLVEMENT_LEVELS = frozenset(i.value for i in InvolvementLevel)


class Stakeholder(db.Model):
    """A person on the client or delivery side of a transformation project."""

    __tablename__ = "stakeholders"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, nullable=False, index=True)

    name = db.Column(db.String(200), nullable=False)
    title = db.Column(db.String(200), nullable=False, default="", comment="Job title")
    role = db.Column(db.String(200), nullable=False, default="", comment="Project role")
    team_id = db.Column(db.Integer, nullable=True, index=True)
    department = db.Column(db.String(200), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    reports_to_id = db.Column(
        db.Integer,
        db.ForeignKey("stakeholders.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Knowledge & expertise
    knowledge_areas = db.Column(db.JSON, nullable=False, default=list, comment="Tier values")
    specializations = db.Column(db.JSON, nullable=False, default=list)

    # Responsibilities & authority
    responsibilities = db.Column(db.JSON, nullable=False, default=list)
    can_approve = db.Column(db.JSON, nullable=False, default=list)

    involvement_level = db.Column(
        db.String(20),
        nullable=True,
        comment="RESPONSIBLE | ACCOUNTABLE | CONSULTED | INFORMED | APPROVER",
    )
    availability_hours = db.Column(db.Float, nullable=True, comment="Hours per week")
    notes = db.Column(db.Text, nullable=True)

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
        db.Index("ix_stakeholders_project_role", "project_id", "role"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "title": self.title,
            "role": self.role,
            "team_id": self.team_id,
            "department": self.department,
            "email": self.email,
            "phone": self.phone,
            "reports_to_id": self.reports_to_id,
            "knowledge_areas": list(self.knowledge_areas or []),
            "specializations": list(self.specializations or []),
            "responsibilities": list(self.responsibilities or []),
            "can_approve": list(self.can_approve or []),
            "involvement_level": self.involvement_level,
            "availability_hours": self.availability_hours,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Stakeholder #{self.id} {self.name!r} role={self.role!r}>"
