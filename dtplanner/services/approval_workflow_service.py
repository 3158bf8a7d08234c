"""
Approval Workflow Service — ordered, step-by-step SOW sign-off.

A workflow is a fixed list of named steps walked strictly in order. Whoever
calls ``advance_step`` decides that the current step is done: the engine
does not check that the step's required approvers have all signed. Callers
who want that gate record individual sign-offs with ``record_step_approval``
and consult ``is_current_step_satisfied`` before advancing.

Lifecycle:
    not_started ──advance──► in_progress ──advance on last step──► completed
    (a workflow created with no steps is completed immediately)
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from dtplanner.core.exceptions import NotFoundError, ValidationError
from dtplanner.models import db
from dtplanner.models.approval import ApprovalWorkflow, StepStatus, WorkflowStatus
from dtplanner.services.stakeholder_service import get_stakeholder_or_404, resolve_stakeholder_ids
from dtplanner.utils.helpers import check_version, commit_or_conflict, utc_now

logger = logging.getLogger(__name__)

_RESOURCE = "ApprovalWorkflow"


def _get_workflow_or_404(workflow_id: int) -> ApprovalWorkflow:
    wf = db.session.get(ApprovalWorkflow, workflow_id)
    if wf is None:
        raise NotFoundError(resource=_RESOURCE, resource_id=workflow_id)
    return wf


def _normalise_steps(project_id: int, steps) -> list[dict]:
    if steps is None:
        return []
    if not isinstance(steps, list):
        raise ValidationError("steps must be an array", details={"steps": "invalid"})

    normalised = []
    for i, s in enumerate(steps, 1):
        if not isinstance(s, dict):
            raise ValidationError(f"step {i} must be an object", details={"steps": i})
        name = s.get("step_name")
        if name is not None and not isinstance(name, str):
            raise ValidationError(f"step {i}: step_name must be a string", details={"step_name": i})
        name = (name or "").strip()
        if not name:
            raise ValidationError(f"step {i}: step_name is required", details={"step_name": i})
        description = s.get("description")
        if description is not None and not isinstance(description, str):
            raise ValidationError(f"step {i}: description must be a string", details={"description": i})
        parallel = s.get("parallel_approval", False)
        if not isinstance(parallel, bool):
            raise ValidationError(
                f"step {i}: parallel_approval must be a boolean", details={"parallel_approval": i},
            )
        normalised.append({
            "step_number": i,
            "step_name": name,
            "description": description or "",
            "required_approvers": resolve_stakeholder_ids(project_id, s.get("required_approvers") or []),
            "parallel_approval": parallel,
            "status": StepStatus.PENDING.value,
            "approvals": [],
            "approved_at": None,
            "approved_by": None,
        })
    return normalised


def create_workflow(project_id: int, assessment_id: int, steps) -> dict:
    """Create a workflow positioned on its first step.

    Args:
        steps: [{step_name, description?, required_approvers?: [int],
                 parallel_approval?: bool}, ...] in walking order.
                 step_number is assigned from the position.

    Raises:
        ValidationError: steps malformed or a step has a blank name.
        NotFoundError: A required approver is not in the project.
    """
    normalised = _normalise_steps(project_id, steps)
    now = utc_now()
    wf = ApprovalWorkflow(
        project_id=project_id,
        assessment_id=assessment_id,
        steps=normalised,
        current_step=1,
        overall_status=WorkflowStatus.NOT_STARTED.value,
    )
    if not normalised:
        wf.overall_status = WorkflowStatus.COMPLETED.value
        wf.completed_at = now

    db.session.add(wf)
    commit_or_conflict(_RESOURCE)
    logger.info(
        "Approval workflow created with %d steps", len(normalised),
        extra={"project_id": project_id, "assessment_id": assessment_id, "workflow_id": wf.id},
    )
    return wf.to_dict()


def get_workflow(workflow_id: int) -> dict:
    return _get_workflow_or_404(workflow_id).to_dict()


def list_workflows(project_id: int, assessment_id: int) -> list[dict]:
    rows = db.session.execute(
        select(ApprovalWorkflow)
        .where(
            ApprovalWorkflow.project_id == project_id,
            ApprovalWorkflow.assessment_id == assessment_id,
        )
        .order_by(ApprovalWorkflow.id.asc())
    ).scalars()
    return [wf.to_dict() for wf in rows]


def advance_step(
    workflow_id: int,
    actor_id: int | None = None,
    expected_version: int | None = None,
) -> dict:
    """Mark the current step approved and move the pointer forward.

    Advancing a completed workflow changes nothing and returns it as is.

    Raises:
        NotFoundError: Workflow does not exist.
        ConcurrencyConflictError: The workflow changed since it was read.
    """
    wf = _get_workflow_or_404(workflow_id)
    check_version(wf, _RESOURCE, expected_version)
    if wf.is_completed:
        return wf.to_dict()

    now = utc_now()
    steps = [dict(s) for s in (wf.steps or [])]
    step = steps[wf.current_step - 1]
    step["status"] = StepStatus.APPROVED.value
    step["approved_at"] = now.isoformat()
    step["approved_by"] = actor_id
    wf.steps = steps

    if wf.started_at is None:
        wf.started_at = now
    wf.current_step += 1
    if wf.current_step > len(steps):
        wf.overall_status = WorkflowStatus.COMPLETED.value
        wf.completed_at = now
    else:
        wf.overall_status = WorkflowStatus.IN_PROGRESS.value
    wf.updated_at = now

    commit_or_conflict(_RESOURCE, wf.id)
    logger.info(
        "Workflow advanced past step %d (%s)", step["step_number"], step["step_name"],
        extra={
            "project_id": wf.project_id,
            "assessment_id": wf.assessment_id,
            "workflow_id": wf.id,
            "stakeholder_id": actor_id,
            "derived_status": wf.overall_status,
        },
    )
    return wf.to_dict()


def record_step_approval(
    workflow_id: int,
    stakeholder_id: int,
    expected_version: int | None = None,
) -> dict:
    """Record one stakeholder's sign-off on the current step without advancing.

    Raises:
        NotFoundError: Workflow or stakeholder does not exist.
        ValidationError: The workflow is already completed.
        ConcurrencyConflictError: The workflow changed since it was read.
    """
    wf = _get_workflow_or_404(workflow_id)
    check_version(wf, _RESOURCE, expected_version)
    if wf.is_completed:
        raise ValidationError("Workflow is already completed", details={"workflow_id": workflow_id})
    get_stakeholder_or_404(wf.project_id, stakeholder_id)

    steps = [dict(s) for s in (wf.steps or [])]
    step = steps[wf.current_step - 1]
    approvals = list(step.get("approvals") or [])
    if stakeholder_id not in approvals:
        approvals.append(stakeholder_id)
    step["approvals"] = approvals
    wf.steps = steps
    wf.updated_at = utc_now()

    commit_or_conflict(_RESOURCE, wf.id)
    logger.info(
        "Step sign-off recorded on step %d", step["step_number"],
        extra={"workflow_id": wf.id, "stakeholder_id": stakeholder_id},
    )
    return wf.to_dict()


def is_current_step_satisfied(workflow: ApprovalWorkflow | dict) -> bool:
    """Whether the current step has the sign-offs it asks for.

    Parallel steps need every required approver; sequential steps need any
    one of them. A step with no required approvers is satisfied. A completed
    workflow has no current step and is reported as satisfied.
    """
    if isinstance(workflow, dict):
        steps = workflow.get("steps") or []
        current = workflow.get("current_step", 1)
    else:
        steps = workflow.steps or []
        current = workflow.current_step
    if not 1 <= current <= len(steps):
        return True

    step = steps[current - 1]
    required = step.get("required_approvers") or []
    if not required:
        return True
    signed = set(step.get("approvals") or [])
    if step.get("parallel_approval"):
        return all(sid in signed for sid in required)
    return any(sid in signed for sid in required)
