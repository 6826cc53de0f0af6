from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict


# Project state constants
class ProjectState:
    """Project state constants"""
    STARTING = "starting"    # Deployment scaled up, pods not ready yet
    RUNNING = "running"      # All desired replicas ready
    SUSPENDED = "suspended"  # Deployment scaled to zero, volume and service kept


class DriverOptions(BaseModel):
    """Options passed to a driver's ``init``; each field overrides a setting."""

    model_config = ConfigDict(extra="forbid")

    namespace: Optional[str] = Field(None, description="Kubernetes namespace")
    kube_config_path: Optional[str] = Field(None, description="Path to kubeconfig")
    image: Optional[str] = Field(None, description="Default project image")
    domain: Optional[str] = Field(
        None, description="Base domain used for project ingress hosts"
    )
    storage_class: Optional[str] = Field(None, description="PVC storage class")
    wait_for_ready: Optional[bool] = Field(
        None, description="Wait for deployments to become ready"
    )


class ProjectOptions(BaseModel):
    """Options passed to ``create`` for a single project."""

    model_config = ConfigDict(extra="forbid")

    image: Optional[str] = Field(None, description="Container image")
    cpus: Optional[float] = Field(None, gt=0, description="CPU allocation")
    memory: Optional[str] = Field(
        None, description="Memory allocation, e.g., '512m', '1g', '512Mi'"
    )
    disk: Optional[str] = Field(
        None,
        description="Size of the project's persistent volume claim, e.g., '1Gi', '10G'",
    )
    env: Dict[str, str] = Field(
        default_factory=dict, description="Extra environment variables"
    )
