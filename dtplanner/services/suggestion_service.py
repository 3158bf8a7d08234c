"""
Stakeholder Suggestion Service — relevance scoring and ranking.

Answers "who should answer / approve / be consulted on this interview
question?" from the declared profile of every stakeholder in a project.

Scoring rules (additive, every rule is evaluated, no short-circuit):
    +50  tier is one of the stakeholder's knowledge areas
    +10  per specialization found in the question text
    +20  default involvement is RESPONSIBLE or ACCOUNTABLE
    +15  per responsibility found in the question text, or naming the tier
    +15  DISCOVERY phase and a "product" role/title
    +15  FOUNDATION phase and an "architect" role/title
    +20  INTELLIGENCE phase on the AI tier

All text matching is a case-insensitive substring test. It is a heuristic:
"ai" inside "maintain" counts as naming the AI tier. A score of 0 means
"no suggestion" and the stakeholder is left out of the result.

Bulk operations skip a stakeholder whose profile cannot be evaluated
(e.g. a tag list holding non-strings) and report it in ``skipped``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from dtplanner.core.exceptions import ValidationError
from dtplanner.models.stakeholder import InvolvementLevel, Phase, Stakeholder, Tier
from dtplanner.services.stakeholder_service import load_project_stakeholders

logger = logging.getLogger(__name__)

TIER_EXPERTISE_POINTS = 50
SPECIALIZATION_POINTS = 10
INVOLVEMENT_POINTS = 20
RESPONSIBILITY_POINTS = 15
PHASE_ROLE_POINTS = 15
AI_PHASE_POINTS = 20

HIGH_CONFIDENCE_MIN = 60
MEDIUM_CONFIDENCE_MIN = 30

REASON_SEPARATOR = " • "

_OWNING_LEVELS = frozenset({InvolvementLevel.RESPONSIBLE.value, InvolvementLevel.ACCOUNTABLE.value})


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ═════════════════════════════════════════════════════════════════════════════
# Result types
# ═════════════════════════════════════════════════════════════════════════════


@dataclass
class ScoreResult:
    score: int
    reasons: list[str] = field(default_factory=list)


@dataclass
class StakeholderSuggestion:
    """One ranked candidate. Transient, never persisted."""
    stakeholder: Stakeholder
    reasons: list[str]
    score: int
    confidence: Confidence

    @property
    def reason(self) -> str:
        return REASON_SEPARATOR.join(self.reasons)

    def to_dict(self) -> dict:
        return {
            "stakeholder": self.stakeholder.to_dict(),
            "reasons": list(self.reasons),
            "reason": self.reason,
            "score": self.score,
            "confidence": self.confidence.value,
        }


@dataclass
class SkippedEntry:
    """An item a bulk operation could not process, and why."""
    entry_id: int | str | None
    reason: str
    context: str | None = None

    def to_dict(self) -> dict:
        return {"id": self.entry_id, "reason": self.reason, "context": self.context}


@dataclass
class SuggestionRanking:
    suggestions: list[StakeholderSuggestion] = field(default_factory=list)
    skipped: list[SkippedEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "suggestions": [s.to_dict() for s in self.suggestions],
            "skipped": [s.to_dict() for s in self.skipped],
        }


# ═════════════════════════════════════════════════════════════════════════════
# Input coercion
# ═════════════════════════════════════════════════════════════════════════════


def parse_tier(value) -> Tier:
    try:
        return Tier(value)
    except ValueError:
        raise ValidationError(
            f"Unknown tier {value!r}. Must be one of: {', '.join(t.value for t in Tier)}",
            details={"tier": value},
        ) from None


def parse_phase(value) -> Phase:
    try:
        return Phase(value)
    except ValueError:
        raise ValidationError(
            f"Unknown phase {value!r}. Must be one of: {', '.join(p.value for p in Phase)}",
            details={"phase": value},
        ) from None


def stakeholder_tags(stakeholder: Stakeholder, attr: str) -> list[str]:
    """Return a stakeholder tag list, rejecting malformed stored data.

    Raises:
        TypeError: If the stored value is not a list of strings.
    """
    value = getattr(stakeholder, attr) or []
    if not isinstance(value, list):
        raise TypeError(f"{attr} must be a list, got {type(value).__name__}")
    for item in value:
        if not isinstance(item, str):
            raise TypeError(f"{attr} entries must be strings, got {type(item).__name__}")
    return value


def _contains(haystack: str, needle: str) -> bool:
    """Case-insensitive substring test; a blank needle never matches."""
    needle = needle.strip().lower()
    return bool(needle) and needle in haystack.lower()


# ═════════════════════════════════════════════════════════════════════════════
# Scorer
# ═════════════════════════════════════════════════════════════════════════════


def score_stakeholder(
    stakeholder: Stakeholder,
    tier: Tier,
    phase: Phase,
    question_text: str,
) -> ScoreResult:
    """Score one stakeholder's relevance to a question.

    Pure function: reads only the stakeholder's attributes and the arguments.

    Returns:
        ScoreResult with the total and one human-readable phrase per rule
        that contributed.

    Raises:
        TypeError: If a tag list on the stakeholder is malformed.
    """
    question = question_text or ""
    score = 0
    reasons: list[str] = []

    if tier.value in stakeholder_tags(stakeholder, "knowledge_areas"):
        score += TIER_EXPERTISE_POINTS
        reasons.append(f"{tier.value} expertise")

    matching_specs = [s for s in stakeholder_tags(stakeholder, "specializations") if _contains(question, s)]
    if matching_specs:
        score += SPECIALIZATION_POINTS * len(matching_specs)
        reasons.append(f"Specialization: {', '.join(matching_specs)}")

    if stakeholder.involvement_level in _OWNING_LEVELS:
        score += INVOLVEMENT_POINTS
        reasons.append(stakeholder.involvement_level)

    matching_resp = [
        r for r in stakeholder_tags(stakeholder, "responsibilities")
        if _contains(question, r) or _contains(r, tier.value)
    ]
    if matching_resp:
        score += RESPONSIBILITY_POINTS * len(matching_resp)
        reasons.append(f"Responsible for: {matching_resp[0]}")

    role_title = (stakeholder.role or "", stakeholder.title or "")
    if phase is Phase.DISCOVERY and any(_contains(t, "product") for t in role_title):
        score += PHASE_ROLE_POINTS
        reasons.append("Product role in Discovery phase")
    elif phase is Phase.FOUNDATION and any(_contains(t, "architect") for t in role_title):
        score += PHASE_ROLE_POINTS
        reasons.append("Architect role in Foundation phase")
    elif phase is Phase.INTELLIGENCE and tier is Tier.AI:
        score += AI_PHASE_POINTS
        reasons.append("AI phase alignment")

    return ScoreResult(score=score, reasons=reasons)


def confidence_for(score: int) -> Confidence:
    if score >= HIGH_CONFIDENCE_MIN:
        return Confidence.HIGH
    if score >= MEDIUM_CONFIDENCE_MIN:
        return Confidence.MEDIUM
    return Confidence.LOW


# ═════════════════════════════════════════════════════════════════════════════
# Ranking
# ═════════════════════════════════════════════════════════════════════════════


def rank_stakeholders(
    stakeholders: list[Stakeholder],
    tier: Tier,
    phase: Phase,
    question_text: str,
) -> SuggestionRanking:
    """Score every stakeholder and return the relevant ones, best first.

    Ties keep the input order (``sorted`` is stable), so pass stakeholders in
    insertion order for deterministic output. A stakeholder whose profile
    cannot be scored is skipped and reported; the rest are still ranked.
    """
    ranking = SuggestionRanking()
    for stakeholder in stakeholders:
        try:
            result = score_stakeholder(stakeholder, tier, phase, question_text)
        except (TypeError, AttributeError, ValueError) as exc:
            logger.warning(
                "Skipping stakeholder during ranking: %s", exc,
                extra={"stakeholder_id": getattr(stakeholder, "id", None)},
            )
            ranking.skipped.append(
                SkippedEntry(entry_id=getattr(stakeholder, "id", None), reason=str(exc), context="ranking")
            )
            continue
        if result.score <= 0:
            continue
        ranking.suggestions.append(
            StakeholderSuggestion(
                stakeholder=stakeholder,
                reasons=result.reasons,
                score=result.score,
                confidence=confidence_for(result.score),
            )
        )
    ranking.suggestions = sorted(ranking.suggestions, key=lambda s: -s.score)
    return ranking


def suggest_stakeholders(
    project_id: int,
    tier: Tier | str,
    phase: Phase | str,
    question_text: str,
) -> list[StakeholderSuggestion]:
    """Ranked suggestions of who should answer a question in a project."""
    return rank_project_stakeholders(project_id, tier, phase, question_text).suggestions


def rank_project_stakeholders(
    project_id: int,
    tier: Tier | str,
    phase: Phase | str,
    question_text: str,
) -> SuggestionRanking:
    """Like ``suggest_stakeholders`` but also reports skipped stakeholders."""
    tier = parse_tier(tier)
    phase = parse_phase(phase)
    return rank_stakeholders(load_project_stakeholders(project_id), tier, phase, question_text)


# ═════════════════════════════════════════════════════════════════════════════
# Approver / consultant lookups
# ═════════════════════════════════════════════════════════════════════════════


def _safe_filter(stakeholders, predicate, context: str, skipped: list[SkippedEntry] | None):
    kept = []
    for s in stakeholders:
        try:
            if predicate(s):
                kept.append(s)
        except (TypeError, AttributeError, ValueError) as exc:
            logger.warning("Skipping stakeholder in %s: %s", context, exc,
                           extra={"stakeholder_id": getattr(s, "id", None)})
            if skipped is not None:
                skipped.append(SkippedEntry(entry_id=getattr(s, "id", None), reason=str(exc), context=context))
    return kept


def filter_approvers(
    stakeholders: list[Stakeholder],
    tier: Tier,
    question_text: str,
    skipped: list[SkippedEntry] | None = None,
) -> list[Stakeholder]:
    """Stakeholders with authority over a tier or over what the question asks.

    A stakeholder qualifies when an approval-authority tag names the tier,
    when the question text contains one of their tags, or when their
    default involvement is APPROVER.
    """
    question = question_text or ""

    def _is_approver(s: Stakeholder) -> bool:
        if s.involvement_level == InvolvementLevel.APPROVER.value:
            return True
        tags = stakeholder_tags(s, "can_approve")
        return any(_contains(tag, tier.value) or _contains(question, tag) for tag in tags)

    return _safe_filter(stakeholders, _is_approver, "approvers", skipped)


def filter_consultants(
    stakeholders: list[Stakeholder],
    tier: Tier,
    skipped: list[SkippedEntry] | None = None,
) -> list[Stakeholder]:
    """CONSULTED stakeholders, plus tier experts who are not merely INFORMED."""

    def _is_consultant(s: Stakeholder) -> bool:
        if s.involvement_level == InvolvementLevel.CONSULTED.value:
            return True
        return (
            tier.value in stakeholder_tags(s, "knowledge_areas")
            and s.involvement_level != InvolvementLevel.INFORMED.value
        )

    return _safe_filter(stakeholders, _is_consultant, "consultants", skipped)


def suggest_approvers_for_question(project_id: int, tier: Tier | str, question_text: str) -> list[Stakeholder]:
    return filter_approvers(load_project_stakeholders(project_id), parse_tier(tier), question_text)


def suggest_consultants_for_question(project_id: int, tier: Tier | str) -> list[Stakeholder]:
    return filter_consultants(load_project_stakeholders(project_id), parse_tier(tier))


def stakeholders_with_tier_knowledge(project_id: int, tier: Tier | str) -> list[Stakeholder]:
    tier = parse_tier(tier)
    return _safe_filter(
        load_project_stakeholders(project_id),
        lambda s: tier.value in stakeholder_tags(s, "knowledge_areas"),
        "tier_knowledge",
        None,
    )
