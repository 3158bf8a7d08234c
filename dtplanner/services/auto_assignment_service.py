"""
Auto-Assignment Service — bulk stakeholder assignment for SOW sections and
interview questions.

auto_assign
    Re-derives every SOW section's required approvers from the directory:
    a stakeholder approves a section when one of their approval-authority
    tags matches the section name, "sow" or "executive" (substring, either
    direction, case-insensitive), or when their default involvement is
    APPROVER. The computed set replaces the stored one, even when empty.
    Recorded decisions are kept and the status is re-derived.

assign_question_stakeholders
    RACI pre-selection for a batch of interview questions, built on the
    suggestion ranking.

Both operations commit once. A stakeholder (or question) that cannot be
evaluated is skipped, logged, and reported in the result's ``skipped``
list; the rest of the batch is still processed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select

from dtplanner.models import db
from dtplanner.models.assignment import QuestionStakeholderAssignment
from dtplanner.models.stakeholder import InvolvementLevel, Stakeholder
from dtplanner.services.section_approval_service import (
    load_section_approvals,
    matches_either_way,
    replace_required_approvers,
)
from dtplanner.services.stakeholder_service import load_project_stakeholders
from dtplanner.services.suggestion_service import (
    SkippedEntry,
    filter_approvers,
    filter_consultants,
    parse_phase,
    parse_tier,
    rank_stakeholders,
    stakeholder_tags,
)
from dtplanner.utils.helpers import commit_or_conflict, utc_now

logger = logging.getLogger(__name__)

SECTION_AUTHORITY_KEYWORDS = ("sow", "executive")

# Role fragments that make an approver the accountable owner of a question
ACCOUNTABLE_ROLE_HINTS = ("lead", "director", "cto", "manager")

MAX_HAS_KNOWLEDGE = 3
MAX_CONSULTED = 2


@dataclass
class AutoAssignResult:
    updated: list[dict] = field(default_factory=list)
    skipped: list[SkippedEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "updated": self.updated,
            "skipped": [s.to_dict() for s in self.skipped],
        }


@dataclass
class QuestionAssignmentResult:
    assignments: list[dict] = field(default_factory=list)
    skipped: list[SkippedEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "assignments": self.assignments,
            "skipped": [s.to_dict() for s in self.skipped],
        }


def _skip_once(skipped: list[SkippedEntry], entry: SkippedEntry) -> None:
    if not any(s.entry_id == entry.entry_id and s.context == entry.context for s in skipped):
        skipped.append(entry)


# ═════════════════════════════════════════════════════════════════════════════
# SOW sections
# ═════════════════════════════════════════════════════════════════════════════


def is_section_approver(stakeholder: Stakeholder, section_name: str) -> bool:
    """Whether a stakeholder's authority covers a SOW section.

    Raises:
        TypeError: The stakeholder's can_approve list is malformed.
    """
    if stakeholder.involvement_level == InvolvementLevel.APPROVER.value:
        return True
    keywords = (section_name, *SECTION_AUTHORITY_KEYWORDS)
    return any(
        matches_either_way(tag, keyword)
        for tag in stakeholder_tags(stakeholder, "can_approve")
        for keyword in keywords
    )


def auto_assign(project_id: int, assessment_id: int) -> AutoAssignResult:
    """Replace every section's required approvers with the computed set.

    Returns:
        AutoAssignResult with the serialized sections after the write and
        any stakeholders skipped for malformed profiles.

    Raises:
        ConcurrencyConflictError: A section changed during the run; nothing
            is written.
    """
    result = AutoAssignResult()
    stakeholders = load_project_stakeholders(project_id)
    approvals = load_section_approvals(project_id, assessment_id)

    for approval in approvals:
        approver_ids = []
        for stakeholder in stakeholders:
            try:
                if is_section_approver(stakeholder, approval.section_name):
                    approver_ids.append(stakeholder.id)
            except (TypeError, AttributeError, ValueError) as exc:
                logger.warning(
                    "Skipping stakeholder during auto-assign: %s", exc,
                    extra={"project_id": project_id, "stakeholder_id": stakeholder.id},
                )
                _skip_once(
                    result.skipped,
                    SkippedEntry(entry_id=stakeholder.id, reason=str(exc), context="auto_assign"),
                )
        replace_required_approvers(approval, approver_ids)

    if approvals:
        commit_or_conflict("SectionApproval")

    result.updated = [a.to_dict() for a in approvals]
    logger.info(
        "Auto-assigned approvers for %d sections (%d stakeholders skipped)",
        len(approvals), len(result.skipped),
        extra={"project_id": project_id, "assessment_id": assessment_id, "skipped": len(result.skipped)},
    )
    return result


# ═════════════════════════════════════════════════════════════════════════════
# Interview questions
# ═════════════════════════════════════════════════════════════════════════════


def _pick_accountable(approvers: list[Stakeholder]) -> int | None:
    for approver in approvers:
        role = (approver.role or "").lower()
        if any(hint in role for hint in ACCOUNTABLE_ROLE_HINTS):
            return approver.id
    return approvers[0].id if approvers else None


def assign_question_stakeholders(
    project_id: int,
    assessment_id: int,
    phase,
    tier,
    questions: list[dict],
) -> QuestionAssignmentResult:
    """Pre-select who answers, owns, advises on and approves each question.

    Per question:
        has_knowledge  top 3 ranked suggestions
        responsible    top suggestion
        accountable    first approver whose role mentions lead, director,
                       cto or manager, else the first approver
        consulted      first 2 consultants
        must_approve   every approver
        informed       left empty for the team to fill in

    Existing assignments for the same question are overwritten. A question
    with no id, no text, or nobody suggested is skipped and reported.

    Args:
        questions: [{"id": str, "text": str}, ...]

    Raises:
        ValidationError: Unknown tier or phase.
    """
    tier = parse_tier(tier)
    phase = parse_phase(phase)
    stakeholders = load_project_stakeholders(project_id)
    existing = {
        a.question_id: a
        for a in db.session.execute(
            select(QuestionStakeholderAssignment).where(
                QuestionStakeholderAssignment.project_id == project_id,
                QuestionStakeholderAssignment.assessment_id == assessment_id,
            )
        ).scalars()
    }

    result = QuestionAssignmentResult()
    rows: list[QuestionStakeholderAssignment] = []
    for question in questions or []:
        if not isinstance(question, dict):
            result.skipped.append(SkippedEntry(entry_id=None, reason="question must be an object", context="question"))
            continue
        question_id = str(question.get("id") or "").strip()
        text = question.get("text")
        if not question_id or not isinstance(text, str) or not text.strip():
            result.skipped.append(
                SkippedEntry(entry_id=question_id or None, reason="question id and text are required", context="question")
            )
            continue

        ranking = rank_stakeholders(stakeholders, tier, phase, text)
        for entry in ranking.skipped:
            _skip_once(result.skipped, entry)
        if not ranking.suggestions:
            result.skipped.append(
                SkippedEntry(entry_id=question_id, reason="no stakeholder suggested", context="question")
            )
            continue

        approvers = filter_approvers(stakeholders, tier, text, [])
        consultants = filter_consultants(stakeholders, tier, [])

        row = existing.get(question_id)
        if row is None:
            row = QuestionStakeholderAssignment(
                project_id=project_id,
                assessment_id=assessment_id,
                question_id=question_id,
            )
            db.session.add(row)
            existing[question_id] = row
        row.phase = phase.value
        row.tier = tier.value
        row.has_knowledge = [s.stakeholder.id for s in ranking.suggestions[:MAX_HAS_KNOWLEDGE]]
        row.responsible = [ranking.suggestions[0].stakeholder.id]
        row.accountable = _pick_accountable(approvers)
        row.consulted = [c.id for c in consultants[:MAX_CONSULTED]]
        row.informed = []
        row.must_approve = [a.id for a in approvers]
        row.updated_at = utc_now()
        if row not in rows:
            rows.append(row)

    if rows:
        commit_or_conflict("QuestionStakeholderAssignment")
    result.assignments = [r.to_dict() for r in rows]
    logger.info(
        "Question assignments written: %d (%d skipped)", len(rows), len(result.skipped),
        extra={"project_id": project_id, "assessment_id": assessment_id, "skipped": len(result.skipped)},
    )
    return result
