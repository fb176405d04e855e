"""
Pytest configuration and shared fixtures for trigflow tests
"""

import pytest

from trigflow.core import config as config_module
from trigflow.core.config import TrigflowConfig, configure
from trigflow.core.logger import set_logger
from trigflow.orchestrator.memory import InMemoryOrchestrator
from trigflow.storage.memory import InMemoryRunStorage
from trigflow.triggers.engine import TriggerEngine
from trigflow.triggers.models import ProcessDefinition
from trigflow.triggers.registry import TriggerRegistry

WORKSPACE = "ws-1"
DEPLOYED = "def-deployed"
UNDEPLOYED = "def-draft"


# ============================================
# AUTO-USE FIXTURES
# ============================================


@pytest.fixture(autouse=True)
def reset_global_state():
    """Each test starts with a fresh global config and the standard logger."""
    config_module._global_config = None
    set_logger(None)
    yield
    config_module._global_config = None
    set_logger(None)


# ============================================
# ENGINE FIXTURES
# ============================================


@pytest.fixture
def run_storage():
    return InMemoryRunStorage()


@pytest.fixture
def config(run_storage):
    """Fresh in-memory configuration, installed globally."""
    cfg = TrigflowConfig(run_storage=run_storage, orchestrator_timeout_seconds=1.0)
    configure(cfg)
    return cfg


@pytest.fixture
def orchestrator(run_storage):
    """Orchestrator with one deployed and one undeployed definition."""
    orch = InMemoryOrchestrator(run_storage=run_storage)
    orch.deploy(ProcessDefinition(id=DEPLOYED, workspace_id=WORKSPACE, deployed_key="proc-1"))
    orch.deploy(ProcessDefinition(id=UNDEPLOYED, workspace_id=WORKSPACE))
    return orch


@pytest.fixture
def registry(orchestrator, config):
    return TriggerRegistry(orchestrator, config)


@pytest.fixture
def engine(registry, orchestrator, config):
    return TriggerEngine(registry, orchestrator, config)


@pytest.fixture
def make_trigger(registry):
    """Factory creating triggers through the registry."""

    async def _make(trigger_type="status_changed", **overrides):
        data = {
            "workspace_id": WORKSPACE,
            "process_definition_id": DEPLOYED,
            "trigger_type": trigger_type,
        }
        data.update(overrides)
        return await registry.create(data, user_id="user-1")

    return _make
