"""
SOW Section Approval Service — multi-party sign-off per SOW section.

Every SOW generated for an assessment is split into named sections; each
section collects decisions from stakeholders and derives its own status
(see ``derive_section_status``). This module owns those records.

Design decisions:
    - Status is derived on read from decisions and required approvers.
    - Each decision or reassignment is one read-modify-write committed as a
      single unit. A racing write to the same row fails with
      ConcurrencyConflictError.
    - finalized_at is set exactly while the derived status is approved;
      finalized_by names the stakeholder whose decision closed it (None when
      a reassignment or an empty approver set did).
    - Ad-hoc decisions (from stakeholders outside required_approvers) are
      recorded and can reject a section, but never approve it on their own.

Functions:
    - initialize_approvals:         Idempotently create one record per section
    - get_approval_status:          All section records for (project, assessment)
    - get_section_approval:         One record
    - submit_decision:              Record a stakeholder decision, re-derive status
    - set_required_approvers:       Manual reassignment, re-derive status
    - replace_required_approvers:   In-session reassignment used by auto-assign
    - get_statistics:               Counts by status + completion percentage
    - get_pending_approvers:        Outstanding required approvers per section
    - is_ready_for_final_approval:  Are all approval-required sections approved?
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field

from sqlalchemy import select

from dtplanner.core.exceptions import NotFoundError, ValidationError
from dtplanner.models import db
from dtplanner.models.approval import (
    RATIONALE_REQUIRED,
    ApprovalStatus,
    DecisionStatus,
    SectionApproval,
)
from dtplanner.models.stakeholder import Stakeholder
from dtplanner.services.stakeholder_service import (
    get_stakeholder_or_404,
    load_project_stakeholders,
    resolve_stakeholder_ids,
)
from dtplanner.utils.helpers import check_version, commit_or_conflict, utc_now

logger = logging.getLogger(__name__)

_RESOURCE = "SectionApproval"


# ═════════════════════════════════════════════════════════════════════════════
# Section catalogue
# ═════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class SectionDefinition:
    """A SOW section and the project roles expected to sign it off."""
    name: str
    approval_required: bool = True
    required_roles: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_value(cls, value) -> "SectionDefinition":
        if isinstance(value, cls):
            return value
        if not isinstance(value, dict):
            raise ValidationError("section definitions must be objects", details={"sections": "invalid"})
        name = value.get("name")
        if name is not None and not isinstance(name, str):
            raise ValidationError("section name must be a string", details={"name": "invalid"})
        name = (name or "").strip()
        if not name:
            raise ValidationError("section name is required", details={"name": "required"})
        approval_required = value.get("approval_required", True)
        if not isinstance(approval_required, bool):
            raise ValidationError(
                "approval_required must be a boolean", details={"approval_required": "invalid"},
            )
        roles = value.get("required_roles") or []
        if not isinstance(roles, (list, tuple)) or not all(isinstance(r, str) for r in roles):
            raise ValidationError(
                "required_roles must be a list of strings", details={"required_roles": "invalid"},
            )
        return cls(
            name=name,
            approval_required=approval_required,
            required_roles=tuple(roles),
        )


DEFAULT_SOW_SECTIONS: tuple[SectionDefinition, ...] = (
    SectionDefinition("Executive Summary", True, ("CTO", "CEO", "Director", "VP", "Product Owner")),
    SectionDefinition("Current State Assessment", True, ("Tech Lead", "Architect", "Engineering Manager")),
    SectionDefinition("Business Drivers", True, ("CFO", "Product Owner", "Business Analyst", "Director")),
    SectionDefinition("Proposed Solution", True, ("CTO", "Architect", "Tech Lead")),
    SectionDefinition("Scope and Deliverables", True, ("Project Manager", "Tech Lead", "Product Owner")),
    SectionDefinition("Success Criteria", True, ("Product Owner", "Stakeholder", "Business Analyst")),
    SectionDefinition("Timeline", True, ("Project Manager", "CTO", "Tech Lead")),
    SectionDefinition("Assumptions and Constraints", False, ("Project Manager", "Legal", "Compliance")),
)


def matches_either_way(a: str, b: str) -> bool:
    """Case-insensitive substring match in either direction; blanks never match."""
    a, b = (a or "").strip().lower(), (b or "").strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def role_matches(stakeholder: Stakeholder, role_hints) -> bool:
    """True when the stakeholder's role or title matches any hint.

    "Senior Tech Lead" matches the hint "Tech Lead"; the role "VP" matches
    the hint "SVP" too. That looseness is intended for seeding and can be
    corrected with set_required_approvers.
    """
    return any(
        matches_either_way(hint, stakeholder.role) or matches_either_way(hint, stakeholder.title)
        for hint in role_hints
    )


# ═════════════════════════════════════════════════════════════════════════════
# Result types
# ═════════════════════════════════════════════════════════════════════════════


@dataclass
class ApprovalStatistics:
    total_sections: int = 0
    approved: int = 0
    pending: int = 0
    rejected: int = 0
    changes_requested: int = 0
    completion_percentage: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


# ═════════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═════════════════════════════════════════════════════════════════════════════


def _get_section_or_404(section_approval_id: int) -> SectionApproval:
    approval = db.session.get(SectionApproval, section_approval_id)
    if approval is None:
        raise NotFoundError(resource=_RESOURCE, resource_id=section_approval_id)
    return approval


def load_section_approvals(project_id: int, assessment_id: int) -> list[SectionApproval]:
    return list(
        db.session.execute(
            select(SectionApproval)
            .where(
                SectionApproval.project_id == project_id,
                SectionApproval.assessment_id == assessment_id,
            )
            .order_by(SectionApproval.id.asc())
        ).scalars()
    )


def _parse_decision_status(value) -> DecisionStatus:
    try:
        return DecisionStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid decision status {value!r}. "
            f"Must be one of: {', '.join(s.value for s in DecisionStatus)}",
            details={"status": value},
        ) from None


def _refresh_finalization(
    approval: SectionApproval,
    previous: ApprovalStatus | None,
    actor_id: int | None,
) -> ApprovalStatus:
    """Keep the finalization stamp in step with the derived status."""
    current = approval.status
    if current is ApprovalStatus.APPROVED and previous is not ApprovalStatus.APPROVED:
        approval.finalized_at = utc_now()
        approval.finalized_by = actor_id
    elif current is not ApprovalStatus.APPROVED:
        approval.finalized_at = None
        approval.finalized_by = None
    return current


# ═════════════════════════════════════════════════════════════════════════════
# Public API
# ═════════════════════════════════════════════════════════════════════════════


def initialize_approvals(
    project_id: int,
    assessment_id: int,
    section_defs=None,
) -> list[dict]:
    """Create approval tracking for every SOW section not yet tracked.

    Idempotent: sections that already exist for (project, assessment) are
    left untouched, decisions included. Required approvers are seeded from
    stakeholders whose role or title matches the section's role hints.

    Args:
        section_defs: SectionDefinition objects or dicts
            ({name, approval_required, required_roles}). Defaults to the
            standard eight-section SOW.

    Returns:
        Serialized records that were created by this call (empty on re-run).
    """
    defs = [SectionDefinition.from_value(d) for d in (section_defs or DEFAULT_SOW_SECTIONS)]
    stakeholders = load_project_stakeholders(project_id)
    existing = {a.section_name for a in load_section_approvals(project_id, assessment_id)}

    created: list[SectionApproval] = []
    for definition in defs:
        if definition.name in existing:
            continue
        required = [s.id for s in stakeholders if role_matches(s, definition.required_roles)]
        approval = SectionApproval(
            project_id=project_id,
            assessment_id=assessment_id,
            section_name=definition.name,
            approval_required=definition.approval_required,
            required_approvers=required,
            decisions=[],
        )
        _refresh_finalization(approval, None, None)
        db.session.add(approval)
        created.append(approval)
        existing.add(definition.name)

    if created:
        commit_or_conflict(_RESOURCE)
    logger.info(
        "SOW approvals initialized: %d created, %d already present",
        len(created), len(defs) - len(created),
        extra={"project_id": project_id, "assessment_id": assessment_id},
    )
    return [a.to_dict() for a in created]


def get_approval_status(project_id: int, assessment_id: int) -> list[dict]:
    return [a.to_dict() for a in load_section_approvals(project_id, assessment_id)]


def get_section_approval(section_approval_id: int) -> dict:
    return _get_section_or_404(section_approval_id).to_dict()


def submit_decision(
    section_approval_id: int,
    stakeholder_id: int,
    status: DecisionStatus | str,
    comments: str | None = None,
    expected_version: int | None = None,
) -> dict:
    """Record one stakeholder's decision on a section and re-derive its status.

    A stakeholder's new decision replaces their earlier one. The stakeholder
    does not have to be a required approver.

    Args:
        status: approved | rejected | changes_requested.
        comments: Mandatory (non-blank) for rejected and changes_requested.
        expected_version: The record version the caller read; a mismatch
            raises ConcurrencyConflictError before anything is written.

    Returns:
        Serialized SectionApproval after the write.

    Raises:
        ValidationError: Unknown status or missing rationale.
        NotFoundError: Section approval or stakeholder does not exist.
        ConcurrencyConflictError: The record changed since it was read.
    """
    decision_status = _parse_decision_status(status)
    if comments is not None and not isinstance(comments, str):
        raise ValidationError("comments must be a string", details={"comments": "invalid"})
    comments = (comments or "").strip() or None
    if decision_status.value in RATIONALE_REQUIRED and not comments:
        raise ValidationError(
            f"comments are required when the decision is {decision_status.value}",
            details={"comments": "required"},
        )

    approval = _get_section_or_404(section_approval_id)
    check_version(approval, _RESOURCE, expected_version)
    get_stakeholder_or_404(approval.project_id, stakeholder_id)

    previous = approval.status
    decision = {
        "stakeholder_id": stakeholder_id,
        "status": decision_status.value,
        "comments": comments,
        "decided_at": utc_now().isoformat(),
    }
    decisions = [dict(d) for d in (approval.decisions or [])]
    for index, existing in enumerate(decisions):
        if existing.get("stakeholder_id") == stakeholder_id:
            decisions[index] = decision
            break
    else:
        decisions.append(decision)
    approval.decisions = decisions

    current = _refresh_finalization(approval, previous, stakeholder_id)
    approval.updated_at = utc_now()
    commit_or_conflict(_RESOURCE, approval.id)

    logger.info(
        "Section decision recorded",
        extra={
            "project_id": approval.project_id,
            "assessment_id": approval.assessment_id,
            "section_approval_id": approval.id,
            "stakeholder_id": stakeholder_id,
            "decision": decision_status.value,
            "derived_status": current.value,
        },
    )
    return approval.to_dict()


def replace_required_approvers(
    approval: SectionApproval,
    stakeholder_ids: list[int],
    actor_id: int | None = None,
) -> ApprovalStatus:
    """Swap a section's required approvers in the current session (no commit).

    Recorded decisions are kept; status is re-derived against the new set.
    """
    previous = approval.status
    approval.required_approvers = list(dict.fromkeys(stakeholder_ids))
    approval.updated_at = utc_now()
    return _refresh_finalization(approval, previous, actor_id)


def set_required_approvers(
    section_approval_id: int,
    stakeholder_ids: list[int],
    expected_version: int | None = None,
) -> dict:
    """Replace a section's required approvers with an explicit list.

    Raises:
        NotFoundError: Section missing, or an id outside the project.
        ValidationError: stakeholder_ids is not a list of integers.
        ConcurrencyConflictError: The record changed since it was read.
    """
    approval = _get_section_or_404(section_approval_id)
    check_version(approval, _RESOURCE, expected_version)
    ids = resolve_stakeholder_ids(approval.project_id, stakeholder_ids)

    current = replace_required_approvers(approval, ids)
    commit_or_conflict(_RESOURCE, approval.id)
    logger.info(
        "Section required approvers reassigned",
        extra={
            "project_id": approval.project_id,
            "assessment_id": approval.assessment_id,
            "section_approval_id": approval.id,
            "derived_status": current.value,
        },
    )
    return approval.to_dict()


def get_statistics(project_id: int, assessment_id: int) -> ApprovalStatistics:
    """Count sections by status and compute sign-off completion.

    completion_percentage = round(100 × approved required sections / required
    sections), rounding halves up; 0 when no section requires approval.
    """
    approvals = load_section_approvals(project_id, assessment_id)
    stats = ApprovalStatistics(total_sections=len(approvals))
    required_total = 0
    required_approved = 0
    for approval in approvals:
        status = approval.status
        if status is ApprovalStatus.APPROVED:
            stats.approved += 1
        elif status is ApprovalStatus.PENDING:
            stats.pending += 1
        elif status is ApprovalStatus.REJECTED:
            stats.rejected += 1
        else:
            stats.changes_requested += 1
        if approval.approval_required:
            required_total += 1
            if status is ApprovalStatus.APPROVED:
                required_approved += 1

    if required_total:
        stats.completion_percentage = math.floor(100 * required_approved / required_total + 0.5)
    return stats


def get_pending_approvers(project_id: int, assessment_id: int) -> dict[str, list[dict]]:
    """Map section name → required approvers who have not approved it yet.

    Only non-approved sections are considered; sections with nobody
    outstanding are omitted. Ids that no longer resolve to a stakeholder in
    the project are dropped with a warning.
    """
    directory = {s.id: s for s in load_project_stakeholders(project_id)}
    pending: dict[str, list[dict]] = {}
    for approval in load_section_approvals(project_id, assessment_id):
        if approval.status is ApprovalStatus.APPROVED:
            continue
        people = []
        for sid in approval.pending_approver_ids():
            stakeholder = directory.get(sid)
            if stakeholder is None:
                logger.warning(
                    "Required approver %s no longer in directory", sid,
                    extra={"project_id": project_id, "section_approval_id": approval.id},
                )
                continue
            people.append(stakeholder.to_dict())
        if people:
            pending[approval.section_name] = people
    return pending


def is_ready_for_final_approval(project_id: int, assessment_id: int) -> dict:
    """Whether every approval-required section is approved.

    Returns:
        {"ready": bool, "pending_sections": [section_name, ...]}
    """
    pending_sections = [
        a.section_name
        for a in load_section_approvals(project_id, assessment_id)
        if a.approval_required and a.status is not ApprovalStatus.APPROVED
    ]
    return {"ready": not pending_sections, "pending_sections": pending_sections}
