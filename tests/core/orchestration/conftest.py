"""Fixtures shared by the orchestration tests."""

import pytest
from orchestration_fakes import patch_tool, pod_logs_tool

from lifecycle_agent.core.orchestration import ToolRegistry
from lifecycle_agent.core.resilience import CircuitBreakerRegistry, RetryPolicy


@pytest.fixture
def tools():
    return ToolRegistry([pod_logs_tool(), patch_tool()])


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def breaker_registry():
    return CircuitBreakerRegistry()


@pytest.fixture
def retry_policy(breaker_registry, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return RetryPolicy(breaker_registry, sleep_func=fake_sleep)
