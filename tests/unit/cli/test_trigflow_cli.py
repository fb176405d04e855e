"""
Tests for the trigflow command line.
"""

import json

import pytest
from click.testing import CliRunner

from trigflow.cli import cli
from trigflow.triggers.webhook import sign


@pytest.fixture
def runner():
    return CliRunner()


class TestCheckConditions:
    """Tests for `trigflow check-conditions`."""

    def test_match(self, runner):
        result = runner.invoke(
            cli, ["check-conditions", '{"toStatus": "done"}', '{"newStatus": "done"}']
        )

        assert result.exit_code == 0
        assert "match" in result.output
        assert "no match" not in result.output

    def test_no_match_exits_nonzero(self, runner):
        result = runner.invoke(
            cli, ["check-conditions", '{"toStatus": "done"}', '{"newStatus": "new"}']
        )

        assert result.exit_code == 1
        assert "no match" in result.output

    def test_invalid_json(self, runner):
        result = runner.invoke(cli, ["check-conditions", "{not json", "{}"])

        assert result.exit_code == 2
        assert "CONDITIONS_JSON is not valid JSON" in result.output


class TestMapVariables:
    """Tests for `trigflow map-variables`."""

    def test_prints_mapped_variables(self, runner):
        result = runner.invoke(
            cli,
            [
                "map-variables",
                '{"entity": "$.entityId", "fixed": 5}',
                '{"entityId": "e-1", "newStatus": "done"}',
            ],
        )

        assert result.exit_code == 0
        variables = json.loads(result.output)
        assert variables["entity"] == "e-1"
        assert variables["fixed"] == 5


class TestNextRuns:
    """Tests for `trigflow next-runs`."""

    def test_lists_runs_in_timezone(self, runner):
        result = runner.invoke(cli, ["next-runs", "0 9 * * *", "-t", "Europe/Moscow", "-n", "3"])

        assert result.exit_code == 0
        assert "Local time" in result.output
        assert result.output.count("09:00:00+03:00") == 3

    def test_invalid_expression(self, runner):
        result = runner.invoke(cli, ["next-runs", "not a cron"])

        assert result.exit_code == 1
        assert "Invalid cron schedule" in result.output

    def test_expression_that_never_matches(self, runner):
        result = runner.invoke(cli, ["next-runs", "0 0 31 2 *"])

        assert result.exit_code == 1
        assert "Invalid cron schedule" in result.output

    def test_invalid_timezone(self, runner):
        result = runner.invoke(cli, ["next-runs", "* * * * *", "--timezone", "Mars/Base"])

        assert result.exit_code == 1
        assert "unknown timezone" in result.output

    def test_count_must_be_positive(self, runner):
        result = runner.invoke(cli, ["next-runs", "* * * * *", "-n", "0"])
        assert result.exit_code == 2


class TestSignWebhook:
    """Tests for `trigflow sign-webhook`."""

    def test_signs_raw_file_contents(self, runner, tmp_path):
        body = b'{"order": 42}'
        path = tmp_path / "payload.json"
        path.write_bytes(body)

        result = runner.invoke(cli, ["sign-webhook", "--secret", "s3cr3t", str(path)])

        assert result.exit_code == 0
        assert result.output.strip() == sign("s3cr3t", body)
        assert result.output.startswith("sha256=")

    def test_requires_secret(self, runner, tmp_path):
        path = tmp_path / "payload.json"
        path.write_text("{}")

        result = runner.invoke(cli, ["sign-webhook", str(path)])
        assert result.exit_code == 2


class TestVersion:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output
