"""
Stakeholder Blueprint — project directory and assignment suggestions.

All business logic is delegated to the service layer; this module only
parses input and shapes responses.

Endpoints:
  Directory:     GET/POST /projects/<pid>/stakeholders
                 GET      /projects/<pid>/stakeholders/<sid>
  Suggestions:   GET      /projects/<pid>/stakeholder-suggestions
                          ?tier=DATA&phase=DISCOVERY&question=...
                          &kind=ranked|approvers|consultants|tier-knowledge
  RACI:          POST     /projects/<pid>/assessments/<aid>/question-assignments
"""

import logging

from flask import Blueprint, jsonify, request

from dtplanner.services import (
    auto_assignment_service,
    stakeholder_service,
    suggestion_service,
)
from dtplanner.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

stakeholder_bp = Blueprint("stakeholder", __name__, url_prefix="/api/v1")
register_error_handlers(stakeholder_bp)


# ═════════════════════════════════════════════════════════════════════════════
# Directory
# ═════════════════════════════════════════════════════════════════════════════


@stakeholder_bp.route("/projects/<int:pid>/stakeholders", methods=["GET"])
def list_stakeholders(pid: int):
    """List a project's stakeholders in insertion order.

    Returns: { "items": [...], "total": int }
    """
    items = stakeholder_service.list_stakeholders(pid)
    return jsonify({"items": items, "total": len(items)}), 200


@stakeholder_bp.route("/projects/<int:pid>/stakeholders", methods=["POST"])
def create_stakeholder(pid: int):
    """Create a stakeholder.

    Body: { "name": str, "role"?: str, "title"?: str,
            "knowledge_areas"?: [tier], "specializations"?: [str],
            "responsibilities"?: [str], "can_approve"?: [str],
            "involvement_level"?: str, ... }
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object.")
    name = data.get("name")
    if name is not None and not isinstance(name, str):
        return api_error(E.VALIDATION_INVALID, "Field 'name' must be a string.")
    if not (name or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "Field 'name' is required.")
    return jsonify(stakeholder_service.create_stakeholder(pid, data)), 201


@stakeholder_bp.route("/projects/<int:pid>/stakeholders/<int:sid>", methods=["GET"])
def get_stakeholder(pid: int, sid: int):
    return jsonify(stakeholder_service.get_stakeholder(pid, sid)), 200


# ═════════════════════════════════════════════════════════════════════════════
# Suggestions
# ═════════════════════════════════════════════════════════════════════════════


@stakeholder_bp.route("/projects/<int:pid>/stakeholder-suggestions", methods=["GET"])
def suggest_stakeholders(pid: int):
    """Suggest stakeholders for an interview question.

    kind=ranked (default) needs tier, phase and question and returns scored
    suggestions plus skipped stakeholders. The other kinds return plain
    stakeholder lists.
    """
    tier = request.args.get("tier")
    if not tier:
        return api_error(E.VALIDATION_REQUIRED, "Query parameter 'tier' is required.")
    question = request.args.get("question", "")
    kind = request.args.get("kind", "ranked")

    if kind == "ranked":
        phase = request.args.get("phase")
        if not phase:
            return api_error(E.VALIDATION_REQUIRED, "Query parameter 'phase' is required.")
        ranking = suggestion_service.rank_project_stakeholders(pid, tier, phase, question)
        return jsonify(ranking.to_dict()), 200

    if kind == "approvers":
        people = suggestion_service.suggest_approvers_for_question(pid, tier, question)
    elif kind == "consultants":
        people = suggestion_service.suggest_consultants_for_question(pid, tier)
    elif kind == "tier-knowledge":
        people = suggestion_service.stakeholders_with_tier_knowledge(pid, tier)
    else:
        return api_error(
            E.VALIDATION_INVALID,
            f"Unknown kind '{kind}'.",
            details={"valid_kinds": ["ranked", "approvers", "consultants", "tier-knowledge"]},
        )
    items = [s.to_dict() for s in people]
    return jsonify({"items": items, "total": len(items)}), 200


@stakeholder_bp.route(
    "/projects/<int:pid>/assessments/<int:aid>/question-assignments",
    methods=["POST"],
)
def assign_question_stakeholders(pid: int, aid: int):
    """Pre-select RACI stakeholders for a batch of interview questions.

    Body: { "tier": str, "phase": str,
            "questions": [{"id": str, "text": str}, ...] }
    """
    data = request.get_json(silent=True) or {}
    missing = [f for f in ("tier", "phase") if not data.get(f)]
    if missing:
        return api_error(E.VALIDATION_REQUIRED, f"Field(s) required: {', '.join(missing)}")
    questions = data.get("questions")
    if not isinstance(questions, list):
        return api_error(E.VALIDATION_INVALID, "Field 'questions' must be an array.")

    result = auto_assignment_service.assign_question_stakeholders(
        pid, aid, data["phase"], data["tier"], questions,
    )
    return jsonify(result.to_dict()), 200
