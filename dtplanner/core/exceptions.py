"""
Engine-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from dtplanner.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="SectionApproval", resource_id=42)
    raise ValidationError("comments are required", details={"comments": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist within the given scope.

    Used for both genuinely missing records and records that exist under a
    different project; the caller cannot tell the two apart.

    Args:
        resource: Human-readable entity name (e.g. "SectionApproval").
        resource_id: The PK that was looked up.
        project_id: Optional scope that was enforced. For logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        project_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.project_id = project_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if project_id is not None:
            msg += f" (project={project_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConcurrencyConflictError(Exception):
    """Raised when a read-modify-write finds the stored record changed since it was read.

    The caller must re-read the record and retry. Maps to HTTP 409.

    Args:
        resource: Entity name.
        resource_id: PK of the contested record.
        expected_version: Version the caller read, when known.
        actual_version: Version found in storage, when known.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | None = None,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        msg = f"{resource} id={resource_id} was modified concurrently; re-read and retry"
        if expected_version is not None and actual_version is not None:
            msg += f" (expected version {expected_version}, found {actual_version})"
        super().__init__(msg)
