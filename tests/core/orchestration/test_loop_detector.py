"""Tests for runaway-loop protection."""

import pytest

from lifecycle_agent.core.orchestration import (
    REPEAT_WINDOW,
    LoopDetector,
    LoopProtectionConfig,
    LoopViolationReason,
    args_fingerprint,
)


class TestLoopProtectionConfig:
    def test_defaults(self):
        config = LoopProtectionConfig()
        assert config.max_iterations == 20
        assert config.max_tool_calls == 50
        assert config.max_repeated_calls == 1

    @pytest.mark.parametrize("field", ["max_iterations", "max_tool_calls", "max_repeated_calls"])
    def test_rejects_non_positive_values(self, field):
        with pytest.raises(ValueError):
            LoopProtectionConfig(**{field: 0})


class TestArgsFingerprint:
    def test_key_order_does_not_matter(self):
        assert args_fingerprint({"a": 1, "b": 2}) == args_fingerprint({"b": 2, "a": 1})

    def test_none_and_empty_are_equal(self):
        assert args_fingerprint(None) == args_fingerprint({})

    def test_different_values_differ(self):
        assert args_fingerprint({"pod_name": "web-1"}) != args_fingerprint({"pod_name": "web-2"})


class TestRepeatedCalls:
    """Identical calls inside the trailing window."""

    def test_window_includes_iteration_four_back(self):
        detector = LoopDetector()
        detector.record_call("get_pod_logs", {"pod_name": "web"}, iteration=1)
        assert detector.count_repeated_calls("get_pod_logs", {"pod_name": "web"}, current_iteration=1 + 4) == 1

    def test_window_excludes_iteration_five_back(self):
        detector = LoopDetector()
        detector.record_call("get_pod_logs", {"pod_name": "web"}, iteration=1)
        assert detector.count_repeated_calls("get_pod_logs", {"pod_name": "web"}, current_iteration=1 + REPEAT_WINDOW) == 0

    def test_counts_across_iterations(self):
        detector = LoopDetector()
        for iteration in (1, 2, 3):
            detector.record_call("get_file", {"file_path": "lifecycle.yaml"}, iteration)
        assert detector.count_repeated_calls("get_file", {"file_path": "lifecycle.yaml"}, 3) == 3

    def test_different_args_are_not_repeats(self):
        detector = LoopDetector()
        detector.record_call("get_pod_logs", {"pod_name": "web"}, 1)
        assert detector.count_repeated_calls("get_pod_logs", {"pod_name": "api"}, 2) == 0

    def test_second_identical_call_is_a_violation_by_default(self):
        detector = LoopDetector()
        assert detector.check_tool_call("get_pod_logs", {"pod_name": "web"}, 1) is None
        detector.record_call("get_pod_logs", {"pod_name": "web"}, 1)

        violation = detector.check_tool_call("get_pod_logs", {"pod_name": "web"}, 2)
        assert violation is not None
        assert violation.reason == LoopViolationReason.REPEATED_CALL
        assert violation.tool_name == "get_pod_logs"
        assert violation.count == 1
        assert "different search term" in violation.hint

    def test_higher_repeat_allowance(self):
        detector = LoopDetector(LoopProtectionConfig(max_repeated_calls=3))
        for iteration in (1, 2):
            detector.record_call("get_pod_logs", {"pod_name": "web"}, iteration)
        assert detector.check_tool_call("get_pod_logs", {"pod_name": "web"}, 3) is None

        detector.record_call("get_pod_logs", {"pod_name": "web"}, 3)
        assert detector.check_tool_call("get_pod_logs", {"pod_name": "web"}, 4) is not None

    def test_reset_clears_history(self):
        detector = LoopDetector()
        detector.record_call("get_pod_logs", {}, 1)
        detector.reset()
        assert detector.history == ()
        assert detector.check_tool_call("get_pod_logs", {}, 1) is None


class TestLoopHints:
    def test_get_file_hint_names_the_file(self):
        hint = LoopDetector().get_loop_hint("get_file", {"file_path": "lifecycle.yaml"})
        assert "lifecycle.yaml" in hint

    def test_resource_search_without_name(self):
        hint = LoopDetector().get_loop_hint("get_k8s_resources", {"resource_type": "pods"})
        assert "check deployment status" in hint

    def test_generic_hint(self):
        hint = LoopDetector().get_loop_hint("query_database", {"table": "builds"})
        assert hint == "Consider trying a different tool or different arguments."


class TestLimits:
    def test_iteration_limit_is_exclusive(self):
        detector = LoopDetector(LoopProtectionConfig(max_iterations=3))
        assert detector.check_iteration(3) is None

        violation = detector.check_iteration(4)
        assert violation.reason == LoopViolationReason.ITERATION_LIMIT
        assert violation.message == "Investigation incomplete - hit iteration limit (3)."

    def test_tool_call_limit(self):
        detector = LoopDetector(LoopProtectionConfig(max_tool_calls=2))
        assert detector.check_tool_calls(2) is None

        violation = detector.check_tool_calls(3)
        assert violation.reason == LoopViolationReason.TOOL_CALL_LIMIT
        assert violation.count == 3
