"""
Stub container driver implementation.

Keeps project state in memory without touching any container runtime.
Every operation accepts any project name in any order and never raises,
so a Project Manager can be exercised without a cluster.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from pydantic import ValidationError

from forge.config import settings
from forge.drivers.core.base import (
    ContainerDriver,
    DriverOptionsInput,
    ProjectDetails,
    ProjectOptionsInput,
    coerce_driver_options,
    coerce_project_options,
)
from forge.models import DriverOptions, ProjectOptions, ProjectState

logger = logging.getLogger(__name__)


class StubDriver(ContainerDriver):
    """In-memory implementation of the ContainerDriver interface."""

    def __init__(self) -> None:
        self._app: Any = None
        self.image: str = settings.project_image
        self._projects: Dict[str, ProjectDetails] = {}
        self._initialized: bool = False

    @property
    def app(self) -> Any:
        return self._app

    async def init(self, app: Any, options: DriverOptionsInput = None) -> None:
        self._app = app
        try:
            opts = coerce_driver_options(options)
        except ValidationError as e:
            logger.warning("Ignoring invalid stub driver options: %s", e)
            opts = DriverOptions()
        self.image = opts.image or settings.project_image
        self._initialized = True
        logger.info("StubDriver initialized")

    async def close(self) -> None:
        self._initialized = False

    async def create(self, name: str, options: ProjectOptionsInput = None) -> None:
        try:
            opts = coerce_project_options(options)
        except ValidationError as e:
            logger.warning("Ignoring invalid options for stub project %s: %s", name, e)
            opts = ProjectOptions()
        self._projects[name] = ProjectDetails(
            name=name,
            state=ProjectState.RUNNING,
            replicas=1,
            ready_replicas=1,
            image=opts.image or self.image,
        )
        logger.debug("Stub project %s created", name)

    async def remove(self, name: str) -> None:
        self._projects.pop(name, None)
        logger.debug("Stub project %s removed", name)

    async def details(self, name: str) -> Optional[ProjectDetails]:
        project = self._projects.get(name)
        return replace(project) if project else None

    async def start(self, name: str) -> None:
        self._set_state(name, ProjectState.RUNNING)

    async def stop(self, name: str) -> None:
        self._set_state(name, ProjectState.SUSPENDED)

    async def restart(self, name: str) -> None:
        self._set_state(name, ProjectState.RUNNING)

    def _set_state(self, name: str, state: str) -> None:
        project = self._projects.get(name)
        if project is None:
            logger.debug("Stub project %s unknown, ignoring %s", name, state)
            return
        running = state == ProjectState.RUNNING
        project.state = state
        project.replicas = 1 if running else 0
        project.ready_replicas = project.replicas
