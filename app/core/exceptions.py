"""
Application-wide exception hierarchy.

Services raise these; blueprints register handlers against them once and
get consistent HTTP status codes everywhere (see app/blueprints/__init__.py).

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Form", resource_id=42)
    raise ValidationError("answers must be a non-empty list", details={"answers": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Form", "Approval").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is missing, malformed or violates a business rule.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class AuthorizationError(Exception):
    """Raised when the acting user may not perform the operation.

    Examples: deciding an approval assigned to someone else, submitting a
    form restricted to another role, viewing a foreign submission.
    Maps to HTTP 403.
    """


class ConflictError(Exception):
    """Raised when an operation would violate a uniqueness rule.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class ConfigurationError(Exception):
    """Raised when stored routing configuration is unusable.

    Typically a flow step naming a role absent from the role directory.
    Maps to HTTP 500: the caller cannot fix it, an administrator must.
    """


class ApproverNotFoundError(Exception):
    """Raised when a mid-flow step has no eligible approver and the
    configured policy is to fail rather than auto-approve.

    Maps to HTTP 500.

    Args:
        role_required: Role name of the step that could not be staffed.
        step_number: Flow step number.
        response_id: Submission being routed.
    """

    def __init__(self, role_required: str, step_number: int, response_id: int | None = None) -> None:
        self.role_required = role_required
        self.step_number = step_number
        self.response_id = response_id
        super().__init__(
            f"No approver found for role {role_required!r} at step {step_number}"
        )


class WorkflowInvariantError(Exception):
    """Raised when a pending submission is left without exactly one open approval."""
