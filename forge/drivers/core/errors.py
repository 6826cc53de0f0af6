"""
Exceptions raised by container drivers.

Every driver failure that the Project Manager is expected to handle is a
subclass of DriverError. Cluster API errors that do not map onto one of
these classes propagate unchanged.
"""

from typing import Optional


class DriverError(Exception):
    """Base class for container driver failures."""

    def __init__(self, message: str, project: Optional[str] = None):
        self.project = project
        super().__init__(message)


class ClusterUnreachableError(DriverError):
    """
    Exception raised when the cluster cannot be reached.

    This typically occurs when:
    - No in-cluster credentials and no usable kubeconfig are available
    - The API server refuses or drops the connection
    - The driver is used after close()
    """

    def __init__(self, details: str = "", project: Optional[str] = None):
        self.details = details
        message = "Kubernetes cluster is unreachable"
        if details:
            message += f": {details}"
        super().__init__(message, project)


class ProjectNotFoundError(DriverError):
    """Exception raised when a project has no backing workload."""

    def __init__(self, project: str):
        super().__init__(f"Project {project} not found", project)


class ProjectExistsError(DriverError):
    """Exception raised when creating a project whose workload already exists."""

    def __init__(self, project: str):
        super().__init__(f"Project {project} already exists", project)


class QuotaExceededError(DriverError):
    """Exception raised when a namespace quota rejects a project resource."""

    def __init__(self, project: str, details: str = ""):
        self.details = details
        message = f"Resource quota exceeded for project {project}"
        if details:
            message += f": {details}"
        super().__init__(message, project)


class ProjectStartTimeoutError(DriverError):
    """Exception raised when a project does not become ready in time."""

    def __init__(self, project: str, timeout: int):
        self.timeout = timeout
        super().__init__(
            f"Project {project} did not become ready within {timeout}s", project
        )


class InvalidProjectNameError(DriverError, ValueError):
    """Exception raised when a project name is not a valid DNS-1123 label."""

    def __init__(self, project: str):
        super().__init__(
            f"Invalid project name: '{project}'. Names must be lowercase "
            "alphanumerics or '-', start and end alphanumeric, at most 63 characters.",
            project,
        )
