"""
Abstract base class for container drivers.

This module defines the interface that all container drivers must implement,
so that the Project Manager can run Projects on Kubernetes or on any other
runtime behind the same lifecycle calls.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from forge.models import DriverOptions, ProjectOptions

DriverOptionsInput = Union[DriverOptions, Dict[str, Any], None]
ProjectOptionsInput = Union[ProjectOptions, Dict[str, Any], None]


@dataclass
class ProjectDetails:
    """Current status of a project's workload."""

    name: str
    state: str
    replicas: int = 0
    ready_replicas: int = 0
    image: Optional[str] = None
    url: Optional[str] = None


def coerce_driver_options(options: DriverOptionsInput) -> DriverOptions:
    """Accept a DriverOptions, a plain dict or None."""
    if options is None:
        return DriverOptions()
    if isinstance(options, DriverOptions):
        return options
    return DriverOptions.model_validate(options)


def coerce_project_options(options: ProjectOptionsInput) -> ProjectOptions:
    """Accept a ProjectOptions, a plain dict or None."""
    if options is None:
        return ProjectOptions()
    if isinstance(options, ProjectOptions):
        return options
    return ProjectOptions.model_validate(options)


class ContainerDriver(ABC):
    """
    Abstract base class for container runtime drivers.

    Every operation is keyed by project name. The driver does not own any
    Project metadata; the Project Manager passes the name (and, for create,
    the options) on each call.
    """

    @abstractmethod
    async def init(self, app: Any, options: DriverOptionsInput = None) -> None:
        """
        Initialize the driver and load the cluster client configuration.

        Args:
            app: The owning application context
            options: Driver options overriding the settings

        Raises:
            ClusterUnreachableError: If the runtime cannot be reached
        """
        pass

    async def close(self) -> None:
        """
        Release the runtime client. Safe to call more than once.
        """
        return None

    @abstractmethod
    async def create(self, name: str, options: ProjectOptionsInput = None) -> None:
        """
        Provision a container-backed instance for the named project.

        Args:
            name: The project name
            options: Image and resource options for the project

        Raises:
            ProjectExistsError: If the project already has a workload
            QuotaExceededError: If a namespace quota rejects the project
            ProjectStartTimeoutError: If the project does not become ready
        """
        pass

    @abstractmethod
    async def remove(self, name: str) -> None:
        """
        Tear down the project's instance and its data.

        Removing a project that does not exist is not an error.
        """
        pass

    @abstractmethod
    async def details(self, name: str) -> Optional[ProjectDetails]:
        """
        Report the current status of the project's instance.

        Returns:
            ProjectDetails, or None if the project has no workload
        """
        pass

    @abstractmethod
    async def start(self, name: str) -> None:
        """
        Resume a suspended instance.

        Raises:
            ProjectNotFoundError: If the project has no workload
        """
        pass

    @abstractmethod
    async def stop(self, name: str) -> None:
        """
        Suspend a running instance, keeping its data.

        Raises:
            ProjectNotFoundError: If the project has no workload
        """
        pass

    @abstractmethod
    async def restart(self, name: str) -> None:
        """
        Cycle the project's instance.

        Raises:
            ProjectNotFoundError: If the project has no workload
        """
        pass

    async def logs(self, name: str, tail_lines: int = 1000) -> str:
        """
        Get the project's recent log output.

        Returns:
            Logs as a string, empty string if nothing is running
        """
        return ""
