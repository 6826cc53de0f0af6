"""
Kubernetes container driver package.

This package provides a Kubernetes-based container driver for running
Projects as Deployments with a Service and PVC storage.
"""

from forge.drivers.kubernetes.driver import KubernetesDriver

__all__ = ["KubernetesDriver"]
