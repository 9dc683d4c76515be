"""Unit tests for the lifecycle-agent CLI commands."""

import json

from lifecycle_agent.cli.main import cli


class TestTokensCommands:
    def test_count(self, cli_runner, prompt_file):
        result = cli_runner.invoke(cli, ["tokens", "count", str(prompt_file)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["success"] is True
        assert data["data"]["tokens"] == 5

    def test_count_from_stdin(self, cli_runner):
        result = cli_runner.invoke(cli, ["tokens", "count", "-"], input="three short words")
        assert json.loads(result.output)["data"]["tokens"] == 3

    def test_breakdown_json(self, cli_runner, prompt_file):
        result = cli_runner.invoke(cli, ["tokens", "breakdown", str(prompt_file)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)["data"]
        assert set(data["sections"]) == {"foundations", "investigation", "safety", "reference"}
        assert data["total"] == sum(data["sections"].values()) + data["providerAugmentation"] + data["environmentContext"]

    def test_breakdown_table(self, cli_runner, prompt_file):
        result = cli_runner.invoke(cli, ["tokens", "breakdown", str(prompt_file), "--table"])
        assert result.exit_code == 0, result.output
        assert "Prompt token breakdown" in result.output
        assert "foundations" in result.output

    def test_budget_within_limit(self, cli_runner, prompt_file):
        result = cli_runner.invoke(cli, ["tokens", "budget", str(prompt_file), "--provider", "anthropic"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)["data"]
        assert data["used"] == 5
        assert data["overBudget"] is False

    def test_budget_over_limit_exits_non_zero(self, cli_runner):
        result = cli_runner.invoke(cli, ["tokens", "budget", "--provider", "openai", "--count", "200000"])
        assert result.exit_code == 1
        payload = json.loads(result.output)
        assert payload["success"] is False
        assert payload["data"]["error_code"] == "TOKEN_BUDGET_EXCEEDED"
        assert payload["data"]["details"]["remaining"] == -90000

    def test_budget_unknown_provider(self, cli_runner):
        result = cli_runner.invoke(cli, ["tokens", "budget", "--provider", "mistral", "--count", "10"])
        assert result.exit_code == 1
        assert json.loads(result.output)["data"]["error_code"] == "UNKNOWN_PROVIDER"

    def test_budget_requires_input(self, cli_runner):
        result = cli_runner.invoke(cli, ["tokens", "budget", "--provider", "openai"])
        assert result.exit_code == 1
        assert json.loads(result.output)["data"]["error_code"] == "VALIDATION_ERROR"

    def test_budget_uses_configured_limits(self, cli_runner, tmp_path):
        config_file = tmp_path / "agent.toml"
        config_file.write_text("[tokens.limits]\nmistral = 100\n")
        result = cli_runner.invoke(
            cli, ["--config", str(config_file), "tokens", "budget", "--provider", "mistral", "--count", "50"]
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["data"]["limit"] == 100


class TestConfigCommands:
    def test_show(self, cli_runner):
        result = cli_runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)["data"]
        assert data["loop"]["max_iterations"] == 20
        assert data["resilience"]["failure_threshold"] == 5

    def test_show_reflects_env(self, cli_runner):
        result = cli_runner.invoke(cli, ["config", "show"], env={"LIFECYCLE_AGENT_MAX_ITERATIONS": "6"})
        assert json.loads(result.output)["data"]["loop"]["max_iterations"] == 6

    def test_invalid_config_reports_error(self, cli_runner):
        result = cli_runner.invoke(cli, ["config", "show"], env={"LIFECYCLE_AGENT_MAX_ITERATIONS": "zero"})
        assert result.exit_code == 1
        assert json.loads(result.output)["data"]["error_code"] == "INVALID_CONFIG"


class TestErrorsCommands:
    def test_classify_rate_limit(self, cli_runner):
        result = cli_runner.invoke(
            cli, ["errors", "classify", "--provider", "openai", "--status", "429", "--retry-after", "2"]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)["data"]
        assert data["kind"] == "rate_limited"
        assert data["retryable"] is True
        assert data["retry_after_seconds"] == 2.0
        assert data["suggested_action"] == "retry"

    def test_classify_auth_failure(self, cli_runner):
        result = cli_runner.invoke(cli, ["errors", "classify", "--provider", "anthropic", "--status", "401"])
        data = json.loads(result.output)["data"]
        assert data["kind"] == "fatal"
        assert data["is_auth"] is True
        assert data["suggested_action"] == "check-config"
        assert data["user_message"].startswith("Anthropic API key is invalid")

    def test_classify_anthropic_overloaded(self, cli_runner):
        result = cli_runner.invoke(cli, ["errors", "classify", "--provider", "anthropic", "--status", "529"])
        assert json.loads(result.output)["data"]["kind"] == "transient"
