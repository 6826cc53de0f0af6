"""
Kubernetes manifest generation utilities.

This module provides functions to generate the Deployment, Service, PVC and
Ingress manifests that back a Project, plus helpers to read a project's
state back from its Deployment.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from kubernetes_asyncio.client import (
    V1Container,
    V1ContainerPort,
    V1Deployment,
    V1DeploymentSpec,
    V1DeploymentStrategy,
    V1EnvVar,
    V1HTTPIngressPath,
    V1HTTPIngressRuleValue,
    V1Ingress,
    V1IngressBackend,
    V1IngressRule,
    V1IngressServiceBackend,
    V1IngressSpec,
    V1LabelSelector,
    V1ObjectMeta,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimSpec,
    V1PersistentVolumeClaimVolumeSource,
    V1PodSpec,
    V1PodTemplateSpec,
    V1ResourceRequirements,
    V1Service,
    V1ServiceBackendPort,
    V1ServicePort,
    V1ServiceSpec,
    V1Volume,
    V1VolumeMount,
    V1VolumeResourceRequirements,
)

from forge.config import settings
from forge.drivers.core.utils import (
    parse_memory_string,
    parse_disk_string,
    parse_and_enforce_minimum_memory,
    parse_and_enforce_minimum_disk,
)
from forge.models import ProjectState

RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"
MANAGED_BY = "forge"


def get_project_labels(name: str) -> Dict[str, str]:
    """Labels carried by every resource of a project."""
    return {
        "app": "forge-project",
        "project": name,
        "app.kubernetes.io/managed-by": MANAGED_BY,
    }


def get_project_selector(name: str) -> str:
    """Label selector matching the pods of a project."""
    return f"project={name}"


# Mapping of Docker-style suffixes to K8s-style suffixes (lowercase keys)
_DOCKER_TO_K8S_SUFFIX = {
    "kb": "Ki",
    "k": "Ki",
    "mb": "Mi",
    "m": "Mi",  # Docker 'm' means MiB, K8s 'm' means milli-bytes
    "gb": "Gi",
    "g": "Gi",
}


def _normalize_unit_for_k8s(size: str) -> str:
    """
    Normalize Docker-style units to K8s-style units without min enforcement.
    """
    value = size.strip()
    lower = value.lower()

    # Already using K8s binary units (case-insensitive)
    if lower.endswith(("ki", "mi", "gi")):
        return value

    for suffix, k8s_suffix in _DOCKER_TO_K8S_SUFFIX.items():
        if lower.endswith(suffix):
            return value[: -len(suffix)] + k8s_suffix

    # No recognized unit suffix, assume bytes
    return value


def normalize_memory_for_k8s(memory: str) -> str:
    """
    Normalize memory unit for Kubernetes.

    Converts Docker-style memory units (like '512m', '1g') to Kubernetes-style
    binary units (like '512Mi', '1Gi') and enforces a minimum of 128 MiB.

    Examples:
        >>> normalize_memory_for_k8s("512m")
        "512Mi"
        >>> normalize_memory_for_k8s("64Mi")  # Too small
        "134217728"
    """
    if not memory:
        return memory

    safe_bytes = parse_and_enforce_minimum_memory(memory)
    if safe_bytes != parse_memory_string(memory):
        return str(safe_bytes)

    return _normalize_unit_for_k8s(memory)


def normalize_disk_for_k8s(disk: str) -> str:
    """
    Normalize disk/storage unit for Kubernetes.

    Same unit conversion as memory, with a minimum of 100 MiB.

    Examples:
        >>> normalize_disk_for_k8s("1g")
        "1Gi"
        >>> normalize_disk_for_k8s("50Mi")  # Too small
        "104857600"
    """
    if not disk:
        return disk

    safe_bytes = parse_and_enforce_minimum_disk(disk)
    if safe_bytes != parse_disk_string(disk):
        return str(safe_bytes)

    return _normalize_unit_for_k8s(disk)


def build_pvc_manifest(
    name: str,
    storage_size: Optional[str] = None,
    storage_class: Optional[str] = None,
) -> V1PersistentVolumeClaim:
    """
    Build a PVC manifest for a project.

    Args:
        name: The project name
        storage_size: Size of the PVC (default: settings.kube_pvc_size)
        storage_class: Storage class to use (default: from settings)

    Returns:
        V1PersistentVolumeClaim: The PVC manifest
    """
    size = normalize_disk_for_k8s(storage_size or settings.kube_pvc_size)
    sc = storage_class or settings.kube_storage_class

    return V1PersistentVolumeClaim(
        api_version="v1",
        kind="PersistentVolumeClaim",
        metadata=V1ObjectMeta(
            name=name,
            labels=get_project_labels(name),
        ),
        spec=V1PersistentVolumeClaimSpec(
            access_modes=["ReadWriteOnce"],
            resources=V1VolumeResourceRequirements(
                requests={"storage": size},
            ),
            storage_class_name=sc if sc else None,
        ),
    )


def build_deployment_manifest(
    name: str,
    image: str,
    cpus: Optional[float] = None,
    memory: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    with_volume: bool = True,
) -> V1Deployment:
    """
    Build a single-replica Deployment manifest for a project.

    Args:
        name: The project name
        image: Container image to use
        cpus: CPU allocation (optional)
        memory: Memory allocation (optional, normalized for K8s)
        env: Additional environment variables (optional)
        with_volume: Mount the project's PVC at settings.project_data_path

    Returns:
        V1Deployment: The Deployment manifest
    """
    normalized_memory = normalize_memory_for_k8s(memory) if memory else None
    labels = get_project_labels(name)

    resources: Any = None
    if cpus is not None or normalized_memory is not None:
        requests: Dict[str, str] = {}
        limits: Dict[str, str] = {}

        if cpus is not None:
            cpu_str = str(cpus)
            requests["cpu"] = cpu_str
            limits["cpu"] = cpu_str

        if normalized_memory is not None:
            requests["memory"] = normalized_memory
            limits["memory"] = normalized_memory

        resources = V1ResourceRequirements(requests=requests, limits=limits)

    env_vars = [
        V1EnvVar(name="PORT", value=str(settings.project_container_port)),
        V1EnvVar(name="FORGE_PROJECT_NAME", value=name),
    ]
    if env:
        for key, value in env.items():
            env_vars.append(V1EnvVar(name=key, value=value))

    volume_mounts = None
    volumes = None
    if with_volume:
        volume_mounts = [
            V1VolumeMount(name="data", mount_path=settings.project_data_path),
        ]
        volumes = [
            V1Volume(
                name="data",
                persistent_volume_claim=V1PersistentVolumeClaimVolumeSource(
                    claim_name=name,
                ),
            ),
        ]

    container = V1Container(
        name="project",
        image=image,
        image_pull_policy=settings.kube_image_pull_policy,
        ports=[
            V1ContainerPort(container_port=settings.project_container_port),
        ],
        env=env_vars,
        resources=resources,
        volume_mounts=volume_mounts,
    )

    return V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=V1ObjectMeta(name=name, labels=labels),
        spec=V1DeploymentSpec(
            replicas=1,
            selector=V1LabelSelector(match_labels={"project": name}),
            # ReadWriteOnce volume cannot be shared by old and new pods
            strategy=V1DeploymentStrategy(type="Recreate"),
            template=V1PodTemplateSpec(
                metadata=V1ObjectMeta(labels=labels),
                spec=V1PodSpec(
                    containers=[container],
                    volumes=volumes,
                    restart_policy="Always",
                ),
            ),
        ),
    )


def build_service_manifest(name: str) -> V1Service:
    """Build a ClusterIP Service manifest exposing the project's port."""
    return V1Service(
        api_version="v1",
        kind="Service",
        metadata=V1ObjectMeta(name=name, labels=get_project_labels(name)),
        spec=V1ServiceSpec(
            type="ClusterIP",
            selector={"project": name},
            ports=[
                V1ServicePort(
                    name="http",
                    port=settings.project_container_port,
                    target_port=settings.project_container_port,
                ),
            ],
        ),
    )


def build_ingress_manifest(
    name: str, domain: str, ingress_class: Optional[str] = None
) -> V1Ingress:
    """Build an Ingress manifest routing <name>.<domain> to the project's Service."""
    ic = ingress_class or settings.kube_ingress_class
    return V1Ingress(
        api_version="networking.k8s.io/v1",
        kind="Ingress",
        metadata=V1ObjectMeta(name=name, labels=get_project_labels(name)),
        spec=V1IngressSpec(
            ingress_class_name=ic if ic else None,
            rules=[
                V1IngressRule(
                    host=get_project_host(name, domain),
                    http=V1HTTPIngressRuleValue(
                        paths=[
                            V1HTTPIngressPath(
                                path="/",
                                path_type="Prefix",
                                backend=V1IngressBackend(
                                    service=V1IngressServiceBackend(
                                        name=name,
                                        port=V1ServiceBackendPort(
                                            number=settings.project_container_port,
                                        ),
                                    ),
                                ),
                            ),
                        ],
                    ),
                ),
            ],
        ),
    )


def build_scale_patch(replicas: int) -> Dict[str, Any]:
    """Patch body setting the Deployment's replica count."""
    return {"spec": {"replicas": replicas}}


def build_restart_patch(timestamp: str, replicas: Optional[int] = None) -> Dict[str, Any]:
    """Patch body triggering a rolling restart, like ``kubectl rollout restart``."""
    patch: Dict[str, Any] = {
        "spec": {
            "template": {
                "metadata": {
                    "annotations": {RESTARTED_AT_ANNOTATION: timestamp},
                },
            },
        },
    }
    if replicas is not None:
        patch["spec"]["replicas"] = replicas
    return patch


def get_project_host(name: str, domain: str) -> str:
    """Get the public host name of a project."""
    return f"{name}.{domain}"


def get_project_url(name: str, namespace: str, domain: Optional[str] = None) -> str:
    """Get the URL a project is reachable at, public if a domain is configured."""
    if domain:
        return f"http://{get_project_host(name, domain)}"
    return f"http://{name}.{namespace}:{settings.project_container_port}"


def deployment_is_ready(deployment: V1Deployment) -> bool:
    """
    Check whether every desired replica of the latest revision is ready.

    A Deployment scaled to zero is never ready.
    """
    spec_replicas = deployment.spec.replicas or 0
    status = deployment.status
    if spec_replicas == 0 or status is None:
        return False

    generation = deployment.metadata.generation or 0
    if (status.observed_generation or 0) < generation:
        return False

    return (
        (status.updated_replicas or 0) == spec_replicas
        and (status.ready_replicas or 0) == spec_replicas
        and (status.available_replicas or 0) == spec_replicas
    )


def get_project_state(deployment: V1Deployment) -> str:
    """Derive a ProjectState from a Deployment."""
    if not deployment.spec.replicas:
        return ProjectState.SUSPENDED
    if deployment_is_ready(deployment):
        return ProjectState.RUNNING
    return ProjectState.STARTING


def get_deployment_image(deployment: V1Deployment) -> Optional[str]:
    """Get the image of the Deployment's first container."""
    containers = deployment.spec.template.spec.containers or []
    return containers[0].image if containers else None
