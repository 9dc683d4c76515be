"""Tests for guarded tool execution."""

import asyncio

import pytest
from orchestration_fakes import patch_tool, pod_logs_tool

from lifecycle_agent.core.orchestration import (
    OutputLimiter,
    ToolResult,
    ToolSafetyLevel,
    ToolSafetyManager,
)


@pytest.fixture
def manager():
    return ToolSafetyManager()


def approve(answer: bool):
    requests = []

    async def confirm(request):
        requests.append(request)
        return answer

    confirm.requests = requests
    return confirm


class TestValidation:
    @pytest.mark.asyncio
    async def test_missing_required_argument(self, manager):
        result = await manager.safe_execute(pod_logs_tool(), {}, asyncio.Event())
        assert result.success is False
        assert result.error.code == "INVALID_ARGUMENTS"
        assert result.error.recoverable is True
        assert "pod_name" in result.error.message

    @pytest.mark.asyncio
    async def test_defaults_are_applied(self, manager):
        seen = {}

        async def capture(args, cancel_event):
            seen.update(args)
            return ToolResult.ok("ok")

        await manager.safe_execute(pod_logs_tool(execute=capture), {"pod_name": "web"}, asyncio.Event())
        assert seen == {"pod_name": "web", "namespace": "default", "tail_lines": 100}


class TestConfirmation:
    def test_needs_confirmation_by_level(self, manager):
        assert manager.needs_confirmation(pod_logs_tool(), {}) is False
        assert manager.needs_confirmation(patch_tool(), {}) is True
        assert manager.needs_confirmation(patch_tool(safety_level=ToolSafetyLevel.DANGEROUS), {}) is True

    def test_cautious_tools_skip_confirmation_when_disabled(self):
        manager = ToolSafetyManager(require_confirmation=False)
        assert manager.needs_confirmation(patch_tool(), {}) is False
        assert manager.needs_confirmation(patch_tool(safety_level=ToolSafetyLevel.DANGEROUS), {}) is True

    def test_should_confirm_can_waive(self, manager):
        tool = patch_tool(should_confirm=lambda args: args.get("name") != "scratch")
        assert manager.needs_confirmation(tool, {"name": "scratch"}) is False
        assert manager.needs_confirmation(tool, {"name": "web"}) is True

    @pytest.mark.asyncio
    async def test_no_handler_fails_closed(self, manager):
        result = await manager.safe_execute(patch_tool(), {"resource_type": "deployment", "name": "web"}, asyncio.Event())
        assert result.success is False
        assert result.error.code == "NO_CONFIRMATION_HANDLER"

    @pytest.mark.asyncio
    async def test_declined(self, manager):
        confirm = approve(False)
        result = await manager.safe_execute(
            patch_tool(), {"resource_type": "deployment", "name": "web"}, asyncio.Event(), confirm
        )
        assert result.error.code == "USER_CANCELLED"
        assert confirm.requests[0].tool_name == "patch_k8s_resource"
        assert confirm.requests[0].args["name"] == "web"

    @pytest.mark.asyncio
    async def test_approved(self, manager):
        result = await manager.safe_execute(
            patch_tool(), {"resource_type": "deployment", "name": "web"}, asyncio.Event(), approve(True)
        )
        assert result.success is True
        assert result.agent_content == "patched deployment/web"


class TestExecutionLimits:
    @pytest.mark.asyncio
    async def test_timeout(self):
        async def hang(args, cancel_event):
            await asyncio.sleep(10)
            return ToolResult.ok("late")

        manager = ToolSafetyManager(execution_timeout=0.05)
        result = await manager.safe_execute(pod_logs_tool(execute=hang), {"pod_name": "web"}, asyncio.Event())
        assert result.error.code == "TIMEOUT"
        assert result.error.recoverable is True

    @pytest.mark.asyncio
    async def test_cancel_event_interrupts_tool(self, manager):
        cancel_event = asyncio.Event()

        async def hang(args, event):
            await asyncio.sleep(10)
            return ToolResult.ok("late")

        asyncio.get_running_loop().call_later(0.02, cancel_event.set)
        result = await manager.safe_execute(pod_logs_tool(execute=hang), {"pod_name": "web"}, cancel_event)
        assert result.cancelled is True
        assert result.error.code == "CANCELLED"

    @pytest.mark.asyncio
    async def test_already_cancelled_does_not_run(self, manager):
        cancel_event = asyncio.Event()
        cancel_event.set()
        calls = []

        async def record(args, event):
            calls.append(args)
            return ToolResult.ok("ran")

        result = await manager.safe_execute(pod_logs_tool(execute=record), {"pod_name": "web"}, cancel_event)
        assert result.cancelled is True
        assert calls == []

    @pytest.mark.asyncio
    async def test_exception_becomes_execution_error(self, manager):
        async def explode(args, event):
            raise RuntimeError("kube api unreachable")

        result = await manager.safe_execute(pod_logs_tool(execute=explode), {"pod_name": "web"}, asyncio.Event())
        assert result.error.code == "EXECUTION_ERROR"
        assert result.error.message == "kube api unreachable"
        assert result.error.details == {"exception": "RuntimeError"}

    @pytest.mark.asyncio
    async def test_output_is_truncated(self):
        async def noisy(args, event):
            return ToolResult.ok("x" * 5000)

        manager = ToolSafetyManager(output_limiter=OutputLimiter(1000))
        result = await manager.safe_execute(pod_logs_tool(execute=noisy), {"pod_name": "web"}, asyncio.Event())
        assert result.success is True
        assert len(result.agent_content) <= 1000

    @pytest.mark.asyncio
    async def test_timed_out_tool_finishes_cleanup_before_returning(self):
        order = []

        async def slow_cleanup(args, event):
            try:
                await asyncio.sleep(10)
            finally:
                await asyncio.sleep(0.05)
                order.append("tool cleanup done")
            return ToolResult.ok("late")

        manager = ToolSafetyManager(execution_timeout=0.01)
        result = await manager.safe_execute(pod_logs_tool(execute=slow_cleanup), {"pod_name": "web"}, asyncio.Event())
        order.append("result returned")

        assert result.error.code == "TIMEOUT"
        assert order == ["tool cleanup done", "result returned"]

    @pytest.mark.asyncio
    async def test_cancelled_tool_finishes_cleanup_before_returning(self, manager):
        cancel_event = asyncio.Event()
        order = []

        async def slow_cleanup(args, event):
            try:
                await asyncio.sleep(10)
            finally:
                await asyncio.sleep(0.05)
                order.append("tool cleanup done")
            return ToolResult.ok("late")

        asyncio.get_running_loop().call_later(0.01, cancel_event.set)
        result = await manager.safe_execute(pod_logs_tool(execute=slow_cleanup), {"pod_name": "web"}, cancel_event)
        order.append("result returned")

        assert result.cancelled is True
        assert order == ["tool cleanup done", "result returned"]

    @pytest.mark.asyncio
    async def test_stuck_cleanup_is_bounded_by_grace(self):
        async def stuck(args, event):
            try:
                await asyncio.sleep(10)
            finally:
                await asyncio.shield(asyncio.sleep(0.5))
            return ToolResult.ok("late")

        manager = ToolSafetyManager(execution_timeout=0.01, cancel_grace=0.05)
        started = asyncio.get_running_loop().time()
        result = await manager.safe_execute(pod_logs_tool(execute=stuck), {"pod_name": "web"}, asyncio.Event())

        assert result.error.code == "TIMEOUT"
        assert asyncio.get_running_loop().time() - started < 0.4
