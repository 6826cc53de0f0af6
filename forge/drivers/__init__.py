"""
Container Driver abstraction layer for Forge.

This module provides a pluggable driver architecture that backs Projects
with containers, allowing Forge to run them on Kubernetes or other runtimes.
"""

from forge.drivers.core import (
    ContainerDriver,
    ProjectDetails,
    DriverError,
    ClusterUnreachableError,
    ProjectNotFoundError,
    ProjectExistsError,
    QuotaExceededError,
    ProjectStartTimeoutError,
    InvalidProjectNameError,
    get_driver,
    set_driver,
    create_driver,
    initialize_driver,
    close_driver,
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
]
