"""Tests for observation masking of stale tool output."""

from lifecycle_agent.core.orchestration import (
    ConversationMessage,
    ToolCallPart,
    ToolResult,
    ToolResultPart,
    estimate_conversation_tokens,
    mask_observations,
    user_text,
)

PLACEHOLDER = "[get_pod_logs output omitted; re-call tool if needed]"


def tool_turns(count, failed=()):
    messages = [user_text("why is the web service failing")]
    for index in range(count):
        call_id = f"call_{index}"
        messages.append(
            ConversationMessage(
                role="assistant",
                parts=[ToolCallPart(tool_call_id=call_id, tool_name="get_pod_logs", args={"pod_name": f"web-{index}"})],
            )
        )
        if index in failed:
            result = ToolResult.fail("pod not found", "NOT_FOUND")
        else:
            result = ToolResult.ok(" ".join(["log"] * 20))
        messages.append(
            ConversationMessage(
                role="user",
                parts=[ToolResultPart(tool_call_id=call_id, tool_name="get_pod_logs", result=result)],
            )
        )
    return messages


def result_texts(messages):
    return [part.result.agent_content for message in messages for part in message.tool_results]


class TestMaskObservations:
    def test_below_threshold_is_untouched(self):
        messages = tool_turns(5)
        result = mask_observations(messages, recency_window=3, token_threshold=10_000)

        assert result.masked is False
        assert result.messages == messages
        assert result.stats.masked_parts == 0
        assert result.stats.tokens_saved == 0

    def test_masks_results_outside_recency_window(self):
        messages = tool_turns(5)
        result = mask_observations(messages, recency_window=3, token_threshold=0)

        assert result.masked is True
        texts = result_texts(result.messages)
        assert texts[:2] == [PLACEHOLDER, PLACEHOLDER]
        assert texts[2:] == [" ".join(["log"] * 20)] * 3
        assert result.stats.masked_parts == 2
        assert result.stats.tokens_after < result.stats.tokens_before

    def test_failed_results_are_kept(self):
        messages = tool_turns(5, failed={0})
        result = mask_observations(messages, recency_window=3, token_threshold=0)

        texts = result_texts(result.messages)
        assert texts[0] == ""
        assert result.messages[2].tool_results[0].result.error.code == "NOT_FOUND"
        assert texts[1] == PLACEHOLDER
        assert result.stats.masked_parts == 1

    def test_input_is_not_mutated(self):
        messages = tool_turns(5)
        mask_observations(messages, recency_window=3, token_threshold=0)
        assert PLACEHOLDER not in result_texts(messages)

    def test_tool_calls_survive_masking(self):
        result = mask_observations(tool_turns(5), recency_window=1, token_threshold=0)
        calls = [part.args for message in result.messages for part in message.tool_calls]
        assert calls == [{"pod_name": f"web-{i}"} for i in range(5)]

    def test_masking_twice_is_stable(self):
        once = mask_observations(tool_turns(5), recency_window=3, token_threshold=0)
        twice = mask_observations(once.messages, recency_window=3, token_threshold=0)
        assert result_texts(twice.messages) == result_texts(once.messages)
        assert twice.stats.masked_parts == 0

    def test_stats_to_dict(self):
        stats = mask_observations(tool_turns(5), recency_window=3, token_threshold=0).stats
        data = stats.to_dict()
        assert data["savedTokens"] == data["totalTokensBefore"] - data["totalTokensAfter"]
        assert data["maskedParts"] == 2


class TestEstimateConversationTokens:
    def test_counts_every_part(self):
        messages = [
            user_text("three word question"),
            ConversationMessage(
                role="user",
                parts=[
                    ToolResultPart(
                        tool_call_id="call_1",
                        tool_name="get_pod_logs",
                        result=ToolResult.ok("two words"),
                    )
                ],
            ),
        ]
        assert estimate_conversation_tokens(messages) == 5
