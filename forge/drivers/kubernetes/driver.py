"""
Kubernetes container driver implementation.

This module implements the ContainerDriver interface using the Kubernetes API
to run each Project as a Deployment with a Service, an optional PVC for its
data and an optional Ingress.
"""

from __future__ import annotations

import asyncio
import logging
import os
import weakref
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

import aiohttp
from kubernetes_asyncio import client, config
from kubernetes_asyncio.client.rest import ApiException

from forge.config import settings
from forge.drivers.core.base import (
    ContainerDriver,
    DriverOptionsInput,
    ProjectDetails,
    ProjectOptionsInput,
    coerce_driver_options,
    coerce_project_options,
)
from forge.drivers.core.errors import (
    ClusterUnreachableError,
    DriverError,
    ProjectExistsError,
    ProjectNotFoundError,
    ProjectStartTimeoutError,
    QuotaExceededError,
)
from forge.drivers.core.utils import validate_project_name
from forge.drivers.kubernetes.utils import (
    build_deployment_manifest,
    build_ingress_manifest,
    build_pvc_manifest,
    build_restart_patch,
    build_scale_patch,
    build_service_manifest,
    deployment_is_ready,
    get_deployment_image,
    get_project_selector,
    get_project_state,
    get_project_url,
)
from forge.models import DriverOptions

logger = logging.getLogger(__name__)

NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"


def _get_current_namespace() -> str:
    """
    Get the current namespace from in-cluster config or settings.

    For in-cluster deployment, reads from the service account namespace file.
    Falls back to settings.kube_namespace if not in cluster.
    """
    if os.path.exists(NAMESPACE_FILE):
        with open(NAMESPACE_FILE, "r") as f:
            return f.read().strip()
    return settings.kube_namespace


def _quota_error(e: ApiException, name: str) -> Optional[QuotaExceededError]:
    """Return a QuotaExceededError if the API refused a request because of a quota."""
    if e.status != 403:
        return None
    text = f"{e.reason or ''} {e.body or ''}"
    if "quota" not in text.lower():
        return None
    return QuotaExceededError(name, details=str(e.reason or ""))


class KubernetesDriver(ContainerDriver):
    """
    Kubernetes implementation of the ContainerDriver interface.

    Each Project is a one-replica Deployment named after the project, with a
    ClusterIP Service of the same name. Stopping a project scales the
    Deployment to zero so its volume and Service survive; removing it deletes
    every resource labelled with the project name.

    Configuration:
        - Set CONTAINER_DRIVER=kubernetes
        - Set KUBE_NAMESPACE to specify the target namespace
        - Set KUBE_PVC_SIZE for storage size
        - Set KUBE_STORAGE_CLASS for storage class (optional)
        - Set KUBE_DOMAIN to expose projects through an Ingress (optional)
    """

    def __init__(self) -> None:
        self._app: Any = None
        self._options: DriverOptions = DriverOptions()
        self._api_client: Optional[client.ApiClient] = None
        self.core_api: Optional[client.CoreV1Api] = None
        self.apps_api: Optional[client.AppsV1Api] = None
        self.networking_api: Optional[client.NetworkingV1Api] = None
        self.namespace: str = settings.kube_namespace
        self.image: str = settings.project_image
        self.domain: Optional[str] = settings.kube_domain
        self.storage_class: Optional[str] = settings.kube_storage_class
        self.wait_for_ready: bool = settings.kube_wait_for_ready
        # Entries disappear once no operation holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._initialized: bool = False

    @property
    def app(self) -> Any:
        """The owning application context passed to init()."""
        return self._app

    async def init(self, app: Any, options: DriverOptionsInput = None) -> None:
        """Load the cluster client configuration and connect to the API."""
        if self._initialized:
            return

        self._app = app
        opts = coerce_driver_options(options)
        self._options = opts

        self.namespace = opts.namespace or _get_current_namespace()
        self.image = opts.image or settings.project_image
        self.domain = opts.domain or settings.kube_domain
        self.storage_class = opts.storage_class or settings.kube_storage_class
        if opts.wait_for_ready is not None:
            self.wait_for_ready = opts.wait_for_ready
        else:
            self.wait_for_ready = settings.kube_wait_for_ready

        try:
            # Try to load in-cluster config first
            try:
                config.load_incluster_config()
                logger.info("Loaded in-cluster Kubernetes config")
            except config.ConfigException:
                kubeconfig = opts.kube_config_path or settings.kube_config_path
                await config.load_kube_config(config_file=kubeconfig)
                logger.info(
                    "Loaded kubeconfig from %s", kubeconfig or "default location"
                )

            self._api_client = client.ApiClient()
            self.core_api = client.CoreV1Api(self._api_client)
            self.apps_api = client.AppsV1Api(self._api_client)
            self.networking_api = client.NetworkingV1Api(self._api_client)

            # Test connection
            await client.VersionApi(self._api_client).get_code()

        except (
            config.ConfigException,
            ApiException,
            aiohttp.ClientError,
            asyncio.TimeoutError,
            OSError,
        ) as e:
            logger.error("Failed to initialize KubernetesDriver: %s", e)
            await self.close()
            raise ClusterUnreachableError(str(e)) from e

        self._initialized = True
        logger.info(
            "KubernetesDriver initialized successfully (namespace: %s)",
            self.namespace,
        )

    async def close(self) -> None:
        """Close Kubernetes client."""
        if self._api_client is not None:
            await self._api_client.close()
            self._api_client = None
            logger.info("KubernetesDriver closed")
        self.core_api = None
        self.apps_api = None
        self.networking_api = None
        self._initialized = False

    async def create(self, name: str, options: ProjectOptionsInput = None) -> None:
        """
        Create the Kubernetes resources backing a project.

        This method:
        1. Creates a PVC for the project's data (if storage is enabled)
        2. Creates the Deployment that mounts the PVC
        3. Creates the Service and, with a domain configured, the Ingress
        4. Waits for the Deployment to be ready (if enabled)

        Anything created by this call is deleted again if a later step fails.

        Raises:
            ProjectExistsError: If the project's Deployment already exists
            QuotaExceededError: If a namespace quota rejects a resource
            ProjectStartTimeoutError: If the Deployment does not become ready
            ClusterUnreachableError: If the API server cannot be reached
            ApiException: If another Kubernetes API call fails
        """
        validate_project_name(name)
        opts = coerce_project_options(options)
        await self._ensure_initialized()

        assert self.core_api is not None
        assert self.apps_api is not None
        assert self.networking_api is not None

        cpus = opts.cpus if opts.cpus is not None else settings.default_project_cpus
        memory = opts.memory or settings.default_project_memory

        async with self._project_lock(name):
            with self._cluster_errors(name):
                created_pvc = False
                created_deployment = False
                created_service = False
                created_ingress = False

                try:
                    # Step 1: PVC
                    if settings.kube_storage_enabled:
                        logger.info("Creating PVC %s", name)
                        try:
                            await self.core_api.create_namespaced_persistent_volume_claim(
                                namespace=self.namespace,
                                body=build_pvc_manifest(
                                    name,
                                    storage_size=opts.disk,
                                    storage_class=self.storage_class,
                                ),
                            )
                            created_pvc = True
                        except ApiException as e:
                            if e.status == 409:
                                logger.warning("PVC %s already exists, reusing", name)
                            else:
                                raise

                    # Step 2: Deployment
                    logger.info("Creating Deployment %s", name)
                    try:
                        await self.apps_api.create_namespaced_deployment(
                            namespace=self.namespace,
                            body=build_deployment_manifest(
                                name,
                                image=opts.image or self.image,
                                cpus=cpus,
                                memory=memory,
                                env=opts.env,
                                with_volume=settings.kube_storage_enabled,
                            ),
                        )
                        created_deployment = True
                    except ApiException as e:
                        if e.status == 409:
                            logger.warning("Deployment %s already exists", name)
                            raise ProjectExistsError(name) from e
                        raise

                    # Step 3: Service and Ingress
                    try:
                        await self.core_api.create_namespaced_service(
                            namespace=self.namespace,
                            body=build_service_manifest(name),
                        )
                        created_service = True
                    except ApiException as e:
                        if e.status == 409:
                            logger.warning("Service %s already exists, reusing", name)
                        else:
                            raise

                    if self.domain:
                        try:
                            await self.networking_api.create_namespaced_ingress(
                                namespace=self.namespace,
                                body=build_ingress_manifest(name, self.domain),
                            )
                            created_ingress = True
                        except ApiException as e:
                            if e.status == 409:
                                logger.warning(
                                    "Ingress %s already exists, reusing", name
                                )
                            else:
                                raise

                    # Step 4: Wait for the Deployment to be ready
                    if self.wait_for_ready and not await self._wait_for_deployment_ready(
                        name
                    ):
                        raise ProjectStartTimeoutError(name, settings.kube_ready_timeout)

                except BaseException as e:
                    await self._rollback(
                        name,
                        ingress=created_ingress,
                        service=created_service,
                        deployment=created_deployment,
                        pvc=created_pvc,
                    )
                    if isinstance(e, ApiException):
                        logger.error(
                            "Failed to create project %s: %s (status=%s)",
                            name, e.reason, e.status,
                        )
                        quota = _quota_error(e, name)
                        if quota is not None:
                            raise quota from e
                    raise

        logger.info("Project %s created in namespace %s", name, self.namespace)

    async def remove(self, name: str) -> None:
        """Delete every resource of a project. Missing resources are skipped."""
        validate_project_name(name)
        await self._ensure_initialized()

        async with self._project_lock(name):
            with self._cluster_errors(name):
                success = await self._cleanup_ingress(name)
                success = await self._cleanup_service(name) and success
                success = await self._cleanup_deployment(name) and success
                success = await self._cleanup_pvc(name) and success

        if not success:
            raise DriverError(f"Failed to remove all resources of project {name}", name)
        logger.info("Project %s removed", name)

    async def details(self, name: str) -> Optional[ProjectDetails]:
        """Read the project's Deployment and report its state."""
        validate_project_name(name)
        await self._ensure_initialized()

        assert self.apps_api is not None

        with self._cluster_errors(name):
            deployment = await self._read_deployment(name)

        if deployment is None:
            return None

        status = deployment.status
        return ProjectDetails(
            name=name,
            state=get_project_state(deployment),
            replicas=deployment.spec.replicas or 0,
            ready_replicas=(status.ready_replicas or 0) if status else 0,
            image=get_deployment_image(deployment),
            url=get_project_url(name, self.namespace, self.domain),
        )

    async def start(self, name: str) -> None:
        """Scale the project's Deployment back to one replica."""
        validate_project_name(name)
        await self._ensure_initialized()

        async with self._project_lock(name):
            with self._cluster_errors(name):
                await self._scale(name, 1)
                logger.info("Project %s starting", name)

                if self.wait_for_ready and not await self._wait_for_deployment_ready(name):
                    raise ProjectStartTimeoutError(name, settings.kube_ready_timeout)

    async def stop(self, name: str) -> None:
        """Scale the project's Deployment to zero, keeping its volume and Service."""
        validate_project_name(name)
        await self._ensure_initialized()

        async with self._project_lock(name):
            with self._cluster_errors(name):
                await self._scale(name, 0)

        logger.info("Project %s suspended", name)

    async def restart(self, name: str) -> None:
        """
        Roll the project's pods, like ``kubectl rollout restart``.

        A suspended project is scaled back to one replica as part of the restart.
        """
        validate_project_name(name)
        await self._ensure_initialized()

        assert self.apps_api is not None

        async with self._project_lock(name):
            with self._cluster_errors(name):
                deployment = await self._read_deployment(name)
                if deployment is None:
                    raise ProjectNotFoundError(name)

                replicas = None if deployment.spec.replicas else 1
                timestamp = datetime.now(timezone.utc).isoformat()
                try:
                    await self.apps_api.patch_namespaced_deployment(
                        name=name,
                        namespace=self.namespace,
                        body=build_restart_patch(timestamp, replicas=replicas),
                    )
                except ApiException as e:
                    if e.status == 404:
                        raise ProjectNotFoundError(name) from e
                    logger.error("Failed to restart project %s: %s", name, e)
                    raise
                logger.info("Project %s restarting", name)

                if self.wait_for_ready and not await self._wait_for_deployment_ready(name):
                    raise ProjectStartTimeoutError(name, settings.kube_ready_timeout)

    async def logs(self, name: str, tail_lines: int = 1000) -> str:
        """Get the log tail of the project's newest pod."""
        validate_project_name(name)
        await self._ensure_initialized()

        assert self.core_api is not None

        with self._cluster_errors(name):
            try:
                pods = await self.core_api.list_namespaced_pod(
                    namespace=self.namespace,
                    label_selector=get_project_selector(name),
                )
                if not pods.items:
                    return ""

                newest = max(
                    pods.items,
                    key=lambda p: p.metadata.creation_timestamp
                    or datetime.min.replace(tzinfo=timezone.utc),
                )
                logs = await self.core_api.read_namespaced_pod_log(
                    name=newest.metadata.name,
                    namespace=self.namespace,
                    tail_lines=tail_lines,
                )
                return logs or ""

            except ApiException as e:
                if e.status in (400, 404):
                    # 400: container not started yet
                    logger.warning("No logs for project %s: %s", name, e.reason)
                    return ""
                logger.error("Failed to get logs for project %s: %s", name, e)
                raise

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.init(self._app, self._options)

    def _project_lock(self, name: str) -> asyncio.Lock:
        """Lock serialising operations on one project name."""
        return self._locks.setdefault(name, asyncio.Lock())

    @contextmanager
    def _cluster_errors(self, name: str) -> Iterator[None]:
        """Turn transport failures into ClusterUnreachableError."""
        try:
            yield
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Kubernetes API unreachable while handling %s: %s", name, e)
            raise ClusterUnreachableError(str(e), project=name) from e

    async def _read_deployment(self, name: str) -> Optional[client.V1Deployment]:
        """Read a project's Deployment, None if it does not exist."""
        assert self.apps_api is not None

        try:
            return await self.apps_api.read_namespaced_deployment(
                name=name,
                namespace=self.namespace,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            logger.error("Failed to read deployment %s: %s", name, e)
            raise

    async def _scale(self, name: str, replicas: int) -> None:
        assert self.apps_api is not None

        try:
            await self.apps_api.patch_namespaced_deployment_scale(
                name=name,
                namespace=self.namespace,
                body=build_scale_patch(replicas),
            )
        except ApiException as e:
            if e.status == 404:
                raise ProjectNotFoundError(name) from e
            logger.error("Failed to scale deployment %s to %d: %s", name, replicas, e)
            raise

    async def _wait_for_deployment_ready(self, name: str) -> bool:
        """
        Poll the project's Deployment until all its replicas are ready.

        Returns:
            True if ready within settings.kube_ready_timeout, False otherwise
        """
        timeout = settings.kube_ready_timeout
        interval = settings.kube_ready_check_interval

        elapsed = 0
        while elapsed < timeout:
            try:
                deployment = await self._read_deployment(name)
                if deployment is not None and deployment_is_ready(deployment):
                    return True
                logger.debug("Deployment %s not ready yet", name)
            except ApiException as e:
                logger.warning(
                    "Error checking deployment %s status: %s", name, e.reason
                )

            await asyncio.sleep(interval)
            elapsed += interval

        logger.error("Timeout waiting for project %s to be ready", name)
        return False

    async def _rollback(
        self,
        name: str,
        ingress: bool,
        service: bool,
        deployment: bool,
        pvc: bool,
    ) -> None:
        """
        Delete the resources a failed create made.

        Transport failures are logged so the original error is the one raised.
        """
        steps = [
            (ingress, self._cleanup_ingress),
            (service, self._cleanup_service),
            (deployment, self._cleanup_deployment),
            (pvc, self._cleanup_pvc),
        ]
        for created, cleanup in steps:
            if not created:
                continue
            try:
                await cleanup(name)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.error("Rollback of project %s incomplete: %s", name, e)

    async def _cleanup_deployment(self, name: str) -> bool:
        """Delete a Deployment if it exists."""
        assert self.apps_api is not None

        try:
            await self.apps_api.delete_namespaced_deployment(
                name=name,
                namespace=self.namespace,
                propagation_policy="Background",
            )
            logger.info("Deployment %s deleted", name)
            return True

        except ApiException as e:
            if e.status == 404:
                logger.debug("Deployment %s not found, skipping deletion", name)
                return True
            logger.error("Failed to delete deployment %s: %s", name, e)
            return False

    async def _cleanup_service(self, name: str) -> bool:
        """Delete a Service if it exists."""
        assert self.core_api is not None

        try:
            await self.core_api.delete_namespaced_service(
                name=name,
                namespace=self.namespace,
            )
            logger.info("Service %s deleted", name)
            return True

        except ApiException as e:
            if e.status == 404:
                logger.debug("Service %s not found, skipping deletion", name)
                return True
            logger.error("Failed to delete service %s: %s", name, e)
            return False

    async def _cleanup_ingress(self, name: str) -> bool:
        """Delete an Ingress if it exists."""
        assert self.networking_api is not None

        try:
            await self.networking_api.delete_namespaced_ingress(
                name=name,
                namespace=self.namespace,
            )
            logger.info("Ingress %s deleted", name)
            return True

        except ApiException as e:
            if e.status == 404:
                logger.debug("Ingress %s not found, skipping deletion", name)
                return True
            logger.error("Failed to delete ingress %s: %s", name, e)
            return False

    async def _cleanup_pvc(self, name: str) -> bool:
        """Delete a PVC if it exists."""
        assert self.core_api is not None

        try:
            await self.core_api.delete_namespaced_persistent_volume_claim(
                name=name,
                namespace=self.namespace,
            )
            logger.info("PVC %s deleted", name)
            return True

        except ApiException as e:
            if e.status == 404:
                logger.debug("PVC %s not found, skipping deletion", name)
                return True
            logger.error("Failed to delete PVC %s: %s", name, e)
            return False
