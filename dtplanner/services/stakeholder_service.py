"""
Stakeholder Directory Service.

Read access to the project's stakeholders for the approval engine, plus the
create path used by the team-management screens and by seeding scripts.
The engine never mutates a stakeholder.

Functions:
    - create_stakeholder:         Validate and persist a stakeholder record
    - list_stakeholders:          Serialized stakeholders for a project, insertion order
    - get_stakeholder:            Single serialized stakeholder (project-scoped)
    - load_project_stakeholders:  ORM rows for a project, insertion order
    - get_stakeholder_or_404:     ORM row or NotFoundError
    - resolve_stakeholder_ids:    Validate that ids belong to a project
"""

import logging

from sqlalchemy import select

from dtplanner.core.exceptions import NotFoundError, ValidationError
from dtplanner.models import db
from dtplanner.models.stakeholder import (
    VALID_INVOLVEMENT_LEVELS,
    VALID_TIERS,
    Stakeholder,
)

logger = logging.getLogger(__name__)

_TAG_FIELDS = ("specializations", "responsibilities", "can_approve")


def _clean_tags(field: str, value) -> list[str]:
    """Normalise a free-text tag list: strip, drop blanks, keep order."""
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{field} must be a list of strings", details={field: "invalid"})
    return [v.strip() for v in value if v.strip()]


def _clean_text(data: dict, field: str, limit: int | None = None) -> str:
    value = data.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "invalid"})
    value = value.strip()
    return value[:limit] if limit else value


def _optional_int(data: dict, field: str) -> int | None:
    value = data.get(field)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"})
    return value


def create_stakeholder(project_id: int, data: dict) -> dict:
    """Create a stakeholder in the project directory.

    Args:
        project_id: Owning project.
        data: name (required), title, role, knowledge_areas (tier values),
              specializations, responsibilities, can_approve,
              involvement_level, and optional contact fields.

    Returns:
        Serialized Stakeholder dict.

    Raises:
        ValidationError: Missing name, unknown tier or involvement level,
            a tag field that is not a list of strings, or a mistyped
            scalar field.
        NotFoundError: reports_to_id is not a stakeholder of this project.
    """
    name = _clean_text(data, "name")
    if not name:
        raise ValidationError("Stakeholder name is required.", details={"name": "required"})

    knowledge_areas = _clean_tags("knowledge_areas", data.get("knowledge_areas"))
    bad_tiers = [t for t in knowledge_areas if t not in VALID_TIERS]
    if bad_tiers:
        raise ValidationError(
            f"knowledge_areas must be drawn from: {', '.join(sorted(VALID_TIERS))}",
            details={"knowledge_areas": bad_tiers},
        )

    involvement = _clean_text(data, "involvement_level") or None
    if involvement is not None and involvement not in VALID_INVOLVEMENT_LEVELS:
        raise ValidationError(
            f"involvement_level must be one of: {', '.join(sorted(VALID_INVOLVEMENT_LEVELS))}",
            details={"involvement_level": involvement},
        )

    tags = {field: _clean_tags(field, data.get(field)) for field in _TAG_FIELDS}

    reports_to_id = _optional_int(data, "reports_to_id")
    if reports_to_id is not None:
        # Managers must live in the same project directory
        get_stakeholder_or_404(project_id, reports_to_id)

    hours = data.get("availability_hours")
    if hours is not None and (isinstance(hours, bool) or not isinstance(hours, (int, float)) or hours < 0):
        raise ValidationError(
            "availability_hours must be a non-negative number",
            details={"availability_hours": "invalid"},
        )

    notes = data.get("notes")
    if notes is not None and not isinstance(notes, str):
        raise ValidationError("notes must be a string", details={"notes": "invalid"})

    stakeholder = Stakeholder(
        project_id=project_id,
        name=name[:200],
        title=_clean_text(data, "title", 200),
        role=_clean_text(data, "role", 200),
        team_id=_optional_int(data, "team_id"),
        department=_clean_text(data, "department", 200) or None,
        email=_clean_text(data, "email", 255) or None,
        phone=_clean_text(data, "phone", 50) or None,
        reports_to_id=reports_to_id,
        knowledge_areas=list(dict.fromkeys(knowledge_areas)),
        involvement_level=involvement,
        availability_hours=hours,
        notes=notes,
        **tags,
    )
    db.session.add(stakeholder)
    db.session.commit()
    logger.info(
        "Stakeholder created",
        extra={"project_id": project_id, "stakeholder_id": stakeholder.id},
    )
    return stakeholder.to_dict()


def load_project_stakeholders(project_id: int) -> list[Stakeholder]:
    """Return every stakeholder of a project in insertion (id) order.

    Insertion order is the tie-breaker for ranked suggestions, so callers
    must not re-sort this list before scoring.
    """
    return list(
        db.session.execute(
            select(Stakeholder)
            .where(Stakeholder.project_id == project_id)
            .order_by(Stakeholder.id.asc())
        ).scalars()
    )


def list_stakeholders(project_id: int) -> list[dict]:
    return [s.to_dict() for s in load_project_stakeholders(project_id)]


def get_stakeholder_or_404(project_id: int, stakeholder_id: int) -> Stakeholder:
    """Fetch a Stakeholder scoped to a project.

    Raises:
        NotFoundError: If missing or owned by another project.
    """
    s = db.session.execute(
        select(Stakeholder).where(
            Stakeholder.id == stakeholder_id,
            Stakeholder.project_id == project_id,
        )
    ).scalar_one_or_none()
    if s is None:
        raise NotFoundError(resource="Stakeholder", resource_id=stakeholder_id, project_id=project_id)
    return s


def get_stakeholder(project_id: int, stakeholder_id: int) -> dict:
    return get_stakeholder_or_404(project_id, stakeholder_id).to_dict()


def resolve_stakeholder_ids(project_id: int, stakeholder_ids) -> list[int]:
    """Validate a list of stakeholder ids against a project's directory.

    Duplicates are dropped, first occurrence wins.

    Raises:
        ValidationError: If the value is not a list of integers.
        NotFoundError: For the first id not present in the project.
    """
    if not isinstance(stakeholder_ids, list) or not all(
        isinstance(i, int) and not isinstance(i, bool) for i in stakeholder_ids
    ):
        raise ValidationError(
            "stakeholder ids must be a list of integers",
            details={"stakeholder_ids": "invalid"},
        )
    wanted = list(dict.fromkeys(stakeholder_ids))
    if not wanted:
        return []
    found = set(
        db.session.execute(
            select(Stakeholder.id).where(
                Stakeholder.project_id == project_id,
                Stakeholder.id.in_(wanted),
            )
        ).scalars()
    )
    for sid in wanted:
        if sid not in found:
            raise NotFoundError(resource="Stakeholder", resource_id=sid, project_id=project_id)
    return wanted
