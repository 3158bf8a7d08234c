"""
SOW Approval Blueprint — section sign-off and sequential approval workflows.

Routes:
  Section sign-off (scoped to a project assessment):
    GET    /projects/<pid>/assessments/<aid>/sow-approvals                     – all sections
    POST   /projects/<pid>/assessments/<aid>/sow-approvals/initialize          – create missing sections
    GET    /projects/<pid>/assessments/<aid>/sow-approvals/statistics          – counts + completion %
    GET    /projects/<pid>/assessments/<aid>/sow-approvals/pending-approvers   – who still has to sign
    GET    /projects/<pid>/assessments/<aid>/sow-approvals/readiness           – ready for final approval?
    POST   /projects/<pid>/assessments/<aid>/sow-approvals/auto-assign         – recompute approvers
    GET    /sow-approvals/<id>                                                 – one section
    POST   /sow-approvals/<id>/decisions                                       – submit a decision
    PUT    /sow-approvals/<id>/required-approvers                              – manual reassignment

  Workflows:
    GET    /projects/<pid>/assessments/<aid>/approval-workflows   – list
    POST   /projects/<pid>/assessments/<aid>/approval-workflows   – create
    GET    /approval-workflows/<wid>                               – get
    POST   /approval-workflows/<wid>/advance                       – approve current step, move on
    POST   /approval-workflows/<wid>/step-approvals                – record a step sign-off

The acting stakeholder is taken from the request body as given; there is no
authentication layer in front of these routes.

Writes accept an optional "expected_version" (the version the client read).
A stale version, or a write that races another one, returns 409.
"""

import logging

from flask import Blueprint, jsonify, request

from dtplanner.services import (
    approval_workflow_service,
    auto_assignment_service,
    section_approval_service,
)
from dtplanner.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

approval_bp = Blueprint("approval", __name__, url_prefix="/api/v1")
register_error_handlers(approval_bp)


# ── helpers ──────────────────────────────────────────────────────────────


def _int_field(data: dict, name: str, *, required: bool):
    """Return (value, err_response) for an integer body field."""
    value = data.get(name)
    if value is None:
        if required:
            return None, api_error(E.VALIDATION_REQUIRED, f"Field '{name}' is required.")
        return None, None
    if isinstance(value, bool) or not isinstance(value, int):
        return None, api_error(E.VALIDATION_INVALID, f"Field '{name}' must be an integer.")
    return value, None


# ═════════════════════════════════════════════════════════════════════════════
# SECTION SIGN-OFF
# ═════════════════════════════════════════════════════════════════════════════

_SCOPE = "/projects/<int:pid>/assessments/<int:aid>/sow-approvals"


@approval_bp.route(_SCOPE, methods=["GET"])
def list_section_approvals(pid: int, aid: int):
    items = section_approval_service.get_approval_status(pid, aid)
    return jsonify({"items": items, "total": len(items)}), 200


@approval_bp.route(f"{_SCOPE}/initialize", methods=["POST"])
def initialize_approvals(pid: int, aid: int):
    """Create approval tracking for every SOW section not yet tracked.

    Body (optional): { "sections": [{name, approval_required, required_roles}] }
    Returns 201 with the sections created by this call (empty when all
    sections already existed).
    """
    data = request.get_json(silent=True) or {}
    sections = data.get("sections")
    if sections is not None and not isinstance(sections, list):
        return api_error(E.VALIDATION_INVALID, "Field 'sections' must be an array.")
    created = section_approval_service.initialize_approvals(pid, aid, sections or None)
    return jsonify({"items": created, "total": len(created)}), 201


@approval_bp.route(f"{_SCOPE}/statistics", methods=["GET"])
def get_statistics(pid: int, aid: int):
    stats = section_approval_service.get_statistics(pid, aid)
    return jsonify(stats.to_dict()), 200


@approval_bp.route(f"{_SCOPE}/pending-approvers", methods=["GET"])
def get_pending_approvers(pid: int, aid: int):
    """Section name → stakeholders who still have to approve it."""
    pending = section_approval_service.get_pending_approvers(pid, aid)
    return jsonify({"pending": pending}), 200


@approval_bp.route(f"{_SCOPE}/readiness", methods=["GET"])
def get_readiness(pid: int, aid: int):
    return jsonify(section_approval_service.is_ready_for_final_approval(pid, aid)), 200


@approval_bp.route(f"{_SCOPE}/auto-assign", methods=["POST"])
def auto_assign(pid: int, aid: int):
    result = auto_assignment_service.auto_assign(pid, aid)
    return jsonify(result.to_dict()), 200


@approval_bp.route("/sow-approvals/<int:section_approval_id>", methods=["GET"])
def get_section_approval(section_approval_id: int):
    return jsonify(section_approval_service.get_section_approval(section_approval_id)), 200


@approval_bp.route("/sow-approvals/<int:section_approval_id>/decisions", methods=["POST"])
def submit_decision(section_approval_id: int):
    """Record a stakeholder's decision on a section.

    Body: { "stakeholder_id": int,
            "status": "approved|rejected|changes_requested",
            "comments": str (required unless approved),
            "expected_version"?: int }
    """
    data = request.get_json(silent=True) or {}
    stakeholder_id, err = _int_field(data, "stakeholder_id", required=True)
    if err:
        return err
    status = data.get("status")
    if status is not None and not isinstance(status, str):
        return api_error(E.VALIDATION_INVALID, "Field 'status' must be a string.")
    status = (status or "").strip()
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "Field 'status' is required.")
    expected_version, err = _int_field(data, "expected_version", required=False)
    if err:
        return err

    record = section_approval_service.submit_decision(
        section_approval_id,
        stakeholder_id,
        status,
        comments=data.get("comments"),
        expected_version=expected_version,
    )
    return jsonify(record), 200


@approval_bp.route("/sow-approvals/<int:section_approval_id>/required-approvers", methods=["PUT"])
def set_required_approvers(section_approval_id: int):
    """Replace a section's required approvers.

    Body: { "stakeholder_ids": [int], "expected_version"?: int }
    """
    data = request.get_json(silent=True) or {}
    if "stakeholder_ids" not in data:
        return api_error(E.VALIDATION_REQUIRED, "Field 'stakeholder_ids' is required.")
    expected_version, err = _int_field(data, "expected_version", required=False)
    if err:
        return err
    record = section_approval_service.set_required_approvers(
        section_approval_id, data["stakeholder_ids"], expected_version=expected_version,
    )
    return jsonify(record), 200


# ═════════════════════════════════════════════════════════════════════════════
# WORKFLOWS
# ═════════════════════════════════════════════════════════════════════════════


@approval_bp.route("/projects/<int:pid>/assessments/<int:aid>/approval-workflows", methods=["GET"])
def list_workflows(pid: int, aid: int):
    items = approval_workflow_service.list_workflows(pid, aid)
    return jsonify({"items": items, "total": len(items)}), 200


@approval_bp.route("/projects/<int:pid>/assessments/<int:aid>/approval-workflows", methods=["POST"])
def create_workflow(pid: int, aid: int):
    """Create a sequential approval workflow.

    Body: { steps: [{step_name, description?, required_approvers?: [int],
                     parallel_approval?: bool}] }
    """
    data = request.get_json(silent=True) or {}
    steps = data.get("steps")
    if steps is None:
        return api_error(E.VALIDATION_REQUIRED, "Field 'steps' is required.")
    if not isinstance(steps, list):
        return api_error(E.VALIDATION_INVALID, "Field 'steps' must be an array.")
    wf = approval_workflow_service.create_workflow(pid, aid, steps)
    return jsonify(wf), 201


@approval_bp.route("/approval-workflows/<int:wid>", methods=["GET"])
def get_workflow(wid: int):
    return jsonify(approval_workflow_service.get_workflow(wid)), 200


@approval_bp.route("/approval-workflows/<int:wid>/advance", methods=["POST"])
def advance_step(wid: int):
    """Approve the current step and move to the next one.

    Body (optional): { "actor_id": int, "expected_version": int }
    """
    data = request.get_json(silent=True) or {}
    actor_id, err = _int_field(data, "actor_id", required=False)
    if err:
        return err
    expected_version, err = _int_field(data, "expected_version", required=False)
    if err:
        return err
    wf = approval_workflow_service.advance_step(wid, actor_id=actor_id, expected_version=expected_version)
    return jsonify(wf), 200


@approval_bp.route("/approval-workflows/<int:wid>/step-approvals", methods=["POST"])
def record_step_approval(wid: int):
    """Record a stakeholder's sign-off on the current step.

    Body: { "stakeholder_id": int, "expected_version"?: int }
    Response adds "current_step_satisfied" so clients know whether to advance.
    """
    data = request.get_json(silent=True) or {}
    stakeholder_id, err = _int_field(data, "stakeholder_id", required=True)
    if err:
        return err
    expected_version, err = _int_field(data, "expected_version", required=False)
    if err:
        return err
    wf = approval_workflow_service.record_step_approval(
        wid, stakeholder_id, expected_version=expected_version,
    )
    wf["current_step_satisfied"] = approval_workflow_service.is_current_step_satisfied(wf)
    return jsonify(wf), 200
