"""
Driver selection and the process-wide driver.

``container_driver`` in the settings names the runtime that hosts Projects;
``initialize_driver`` builds that driver, runs its ``init`` and keeps it for
``get_driver``.
"""

from typing import Any, Callable, Dict, Optional
import logging

from forge.drivers.core.base import ContainerDriver, DriverOptionsInput

logger = logging.getLogger(__name__)

_DRIVER_REGISTRY: Dict[str, Callable[[], ContainerDriver]] = {}

# Accepted by the settings, no driver yet
_PLANNED_DRIVERS = {"docker", "localfs"}


def _get_driver_registry() -> Dict[str, Callable[[], ContainerDriver]]:
    """Fill the registry on first use so the stub never imports kubernetes_asyncio."""
    if not _DRIVER_REGISTRY:
        from forge.drivers.kubernetes.driver import KubernetesDriver
        from forge.drivers.stub.driver import StubDriver

        _DRIVER_REGISTRY.update(
            {
                "kubernetes": KubernetesDriver,
                "stub": StubDriver,
            }
        )
    return _DRIVER_REGISTRY


_driver: Optional[ContainerDriver] = None


def create_driver(driver_type: str) -> ContainerDriver:
    """
    Build an uninitialised driver for ``driver_type``.

    Raises:
        NotImplementedError: For ``docker`` and ``localfs``.
        ValueError: For any other unregistered name.
    """
    registry = _get_driver_registry()

    if driver_type in registry:
        return registry[driver_type]()

    if driver_type in _PLANNED_DRIVERS:
        raise NotImplementedError(
            f"{driver_type} driver is not yet implemented. "
            "Please use one of: " + ", ".join(sorted(registry))
        )

    raise ValueError(
        f"Unknown driver type: {driver_type}. "
        "Supported types: " + ", ".join(sorted(registry.keys() | _PLANNED_DRIVERS))
    )


def set_driver(driver: Optional[ContainerDriver]) -> None:
    global _driver
    _driver = driver


def get_driver() -> ContainerDriver:
    """Return the driver set up by ``initialize_driver``."""
    if _driver is None:
        raise RuntimeError(
            "Container driver not initialized. Call initialize_driver() first."
        )
    return _driver


async def initialize_driver(
    driver_type: str, app: Any = None, options: DriverOptionsInput = None
) -> ContainerDriver:
    """Create the driver, hand it the owning app and make it the global one."""
    driver = create_driver(driver_type)
    await driver.init(app, options)
    set_driver(driver)
    logger.info("Container driver initialized: %s", driver_type)
    return driver


async def close_driver() -> None:
    global _driver
    if _driver is not None:
        await _driver.close()
        _driver = None
        logger.info("Container driver closed")
