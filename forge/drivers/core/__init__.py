"""Core driver abstractions and factory utilities."""

from forge.drivers.core.base import ContainerDriver, ProjectDetails
from forge.drivers.core.errors import (
    DriverError,
    ClusterUnreachableError,
    ProjectNotFoundError,
    ProjectExistsError,
    QuotaExceededError,
    ProjectStartTimeoutError,
    InvalidProjectNameError,
)
from forge.drivers.core.factory import (
    get_driver,
    set_driver,
    create_driver,
    initialize_driver,
    close_driver,
)
from forge.drivers.core.utils import (
    parse_memory_string,
    parse_disk_string,
    validate_project_name,
)

__all__ = [
    "ContainerDriver",
    "ProjectDetails",
    "DriverError",
    "ClusterUnreachableError",
    "ProjectNotFoundError",
    "ProjectExistsError",
    "QuotaExceededError",
    "ProjectStartTimeoutError",
    "InvalidProjectNameError",
    "get_driver",
    "set_driver",
    "create_driver",
    "initialize_driver",
    "close_driver",
    "parse_memory_string",
    "parse_disk_string",
    "validate_project_name",
]
