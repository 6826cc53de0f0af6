"""
Forge 测试配置

包含通用的 pytest fixtures 和配置。
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio


# ============================================================================
# pytest 标记注册
# ============================================================================

def pytest_configure(config):
    """注册自定义标记"""
    config.addinivalue_line(
        "markers", "integration: 集成测试，组合多个组件"
    )
    config.addinivalue_line(
        "markers", "unit: 单元测试，不需要外部依赖"
    )


# ============================================================================
# 通用 fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def reset_global_driver():
    """每个测试前后重置全局驱动"""
    from forge.drivers.core.factory import set_driver

    set_driver(None)
    yield
    set_driver(None)


@pytest.fixture
def app_context():
    """模拟宿主应用上下文"""
    return MagicMock(name="app")


@pytest_asyncio.fixture
async def stub_driver(app_context):
    """已初始化的内存驱动"""
    from forge.drivers.stub.driver import StubDriver

    driver = StubDriver()
    await driver.init(app_context, {"image": "stub/image:1"})
    yield driver
    await driver.close()


@pytest.fixture
def k8s_driver():
    """
    Kubernetes 驱动，API 客户端全部替换为 AsyncMock

    不连接真实集群，也不等待 Deployment 就绪。
    """
    from forge.drivers.kubernetes.driver import KubernetesDriver

    driver = KubernetesDriver()
    driver.namespace = "test-ns"
    driver.image = "nodered/node-red:test"
    driver.domain = None
    driver.wait_for_ready = False
    driver.core_api = AsyncMock()
    driver.apps_api = AsyncMock()
    driver.networking_api = AsyncMock()
    driver._initialized = True
    return driver


@pytest.fixture
def deployment_factory():
    """返回 Deployment 构造函数"""
    return make_deployment


def make_deployment(
    name: str = "demo",
    replicas: int = 1,
    ready: int = 0,
    generation: int = 1,
    observed_generation: int = 1,
):
    """构造带状态的 Deployment 对象"""
    from kubernetes_asyncio.client import V1DeploymentStatus

    from forge.drivers.kubernetes.utils import build_deployment_manifest

    deployment = build_deployment_manifest(name, image="nodered/node-red:test")
    deployment.spec.replicas = replicas
    deployment.metadata.generation = generation
    deployment.status = V1DeploymentStatus(
        observed_generation=observed_generation,
        replicas=replicas,
        updated_replicas=ready,
        ready_replicas=ready,
        available_replicas=ready,
    )
    return deployment
