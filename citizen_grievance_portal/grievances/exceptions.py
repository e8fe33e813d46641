class WorkflowError(Exception):
    """Base class for caller-recoverable workflow failures."""

    code = "WORKFLOW_ERROR"
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def as_dict(self):
        return {"error": self.code, "message": self.message}


class InvalidTransition(WorkflowError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current_status, target_status, role):
        self.current_status = current_status
        self.target_status = target_status
        self.role = role
        super().__init__(
            f"This complaint cannot be moved from '{_label(current_status)}' "
            f"to '{_label(target_status)}' (requested by {role})."
        )


class Forbidden(WorkflowError):
    code = "FORBIDDEN"
    status_code = 403


class DepartmentMismatch(WorkflowError):
    code = "DEPARTMENT_MISMATCH"
    status_code = 400


class MissingDepartment(WorkflowError):
    code = "MISSING_DEPARTMENT"
    status_code = 400

    def __init__(self, message="This complaint has no department yet and cannot be assigned."):
        super().__init__(message)


class ConcurrentModification(WorkflowError):
    code = "CONCURRENT_MODIFICATION"
    status_code = 409

    def __init__(self, tracking_code, expected_version):
        self.tracking_code = tracking_code
        self.expected_version = expected_version
        super().__init__(
            f"Complaint {tracking_code} was changed by someone else. Reload it and try again."
        )


def _label(status):
    return str(status).replace("_", " ").title()
