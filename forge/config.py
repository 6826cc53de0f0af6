from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8157, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Root logging level")

    # Container driver settings
    # Supported drivers:
    # - kubernetes: Projects run as Deployments in a Kubernetes namespace
    # - stub: In-memory driver for tests and local development
    # - docker: Docker runtime (not yet implemented)
    # - localfs: Local process runtime (not yet implemented)
    container_driver: Literal["kubernetes", "stub", "docker", "localfs"] = Field(
        default="kubernetes", description="Container runtime driver to use"
    )

    # Kubernetes settings
    kube_namespace: str = Field(
        default="default", description="Kubernetes namespace for projects"
    )
    kube_config_path: str | None = Field(
        default=None, description="Path to kubeconfig file (optional)"
    )
    kube_image_pull_policy: str = Field(
        default="IfNotPresent", description="Image pull policy for project pods"
    )
    kube_pvc_size: str = Field(
        default="1Gi", description="Default size of the PVC for each project"
    )
    kube_storage_class: str | None = Field(
        default=None, description="Storage class for PVC (optional)"
    )
    kube_storage_enabled: bool = Field(
        default=True, description="Give each project a persistent volume claim"
    )
    kube_ingress_class: str | None = Field(
        default=None, description="Ingress class for project ingresses (optional)"
    )
    kube_domain: str | None = Field(
        default=None,
        description="Base domain; when set each project gets an Ingress at <name>.<domain>",
    )
    kube_wait_for_ready: bool = Field(
        default=True, description="Wait for deployments to become ready on create/start"
    )
    kube_ready_timeout: int = Field(
        default=120, gt=0, description="Maximum time to wait for a project to be ready, in seconds"
    )
    kube_ready_check_interval: int = Field(
        default=2, gt=0, description="Readiness poll interval in seconds"
    )

    # Project container settings
    project_image: str = Field(
        default="nodered/node-red:latest", description="Default project container image"
    )
    project_container_port: int = Field(
        default=1880, description="Port that project containers listen on"
    )
    project_data_path: str = Field(
        default="/data", description="Mount path of the project volume in the container"
    )

    # Project default settings
    default_project_cpus: float | None = Field(
        default=None, description="Default project CPU allocation (optional)"
    )
    default_project_memory: str | None = Field(
        default=None, description="Default project memory allocation, e.g. '256m'"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
