# teamflow/services/exceptions.py
"""
Error taxonomy for task mutations.

Every error aborts the mutation attempt before anything is committed.
Routers translate them into HTTP responses through the handler registered
in main.py.
"""


class TaskError(Exception):
    """Base class for task-core errors"""

    status_code = 500
    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TaskValidationError(TaskError):
    """Malformed or inconsistent input, rejected before any mutation"""

    status_code = 400
    kind = "validation"


class TaskPermissionError(TaskError):
    """Actor is not allowed to perform the requested change"""

    status_code = 403
    kind = "permission"


class TaskNotFoundError(TaskError):
    """Task id does not exist (possibly deleted concurrently)"""

    status_code = 404
    kind = "not_found"

    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class TaskConflictError(TaskError):
    """Caller's assumed prior state no longer matches the stored state"""

    status_code = 409
    kind = "conflict"

    def __init__(self, message: str, current_version: int = None) -> None:
        super().__init__(message)
        self.current_version = current_version


class TemplateNotFoundError(TaskError):
    """Checklist template id does not exist or is inactive"""

    status_code = 404
    kind = "not_found"

    def __init__(self, template_id: int) -> None:
        super().__init__(f"Checklist template {template_id} not found")
        self.template_id = template_id
