"""Tests for the CLI entry point."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner

from prsage_cli.cli import main
from prsage_cli.commands.review import ShadowSourceControl
from prsage_core.config import DEFAULT_CONFIG
from prsage_core.errors import PublishError, ReviewError
from prsage_core.models import ReviewRef, ReviewReport


def _make_config(github_token="tok", model="anthropic", anthropic_key="ant", openai_key=None, dify_key=None):
    return {
        **DEFAULT_CONFIG,
        "github_token": github_token,
        "model": model,
        "anthropic_api_key": anthropic_key,
        "openai_api_key": openai_key,
        "dify_api_key": dify_key,
    }


def _report(status="success", analyzed=2, failed=0):
    return ReviewReport(
        outcomes=(),
        total_changed=3,
        eligible=analyzed + failed,
        analyzed=analyzed,
        failed=failed,
        elapsed=4.2,
        status=status,
    )


def _patch_common(mocker, config=None):
    """Patch load_config and get_repo for most tests."""
    cfg = config or _make_config()
    load = mocker.patch("prsage_core.config.load_config", return_value=cfg)
    repo = mocker.patch("prsage_cli.commands.review.get_repo", return_value=MagicMock())
    return load, repo


class TestCLIValidation:
    def test_missing_github_token(self, mocker):
        _patch_common(mocker, config=_make_config(github_token=None))

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "GITHUB_TOKEN" in result.output

    def test_missing_anthropic_key(self, mocker):
        _patch_common(mocker, config=_make_config(model="anthropic", anthropic_key=None))

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "ANTHROPIC_API_KEY" in result.output

    def test_missing_openai_key(self, mocker):
        _patch_common(mocker, config=_make_config(model="openai", anthropic_key=None))

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "OPENAI_API_KEY" in result.output

    def test_missing_dify_key(self, mocker):
        _patch_common(mocker, config=_make_config(model="dify"))

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "DIFY_API_KEY" in result.output

    def test_unknown_model_rejected_by_click(self):
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1", "--model", "llama"])
        assert result.exit_code == 2


class TestCLIRunReview:
    def test_calls_run_review_with_correct_args(self, mocker):
        _patch_common(mocker)
        mock_run = mocker.patch("prsage_cli.commands.review.run_review", return_value=_report())

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "42", "--conversation-id", "c-1"])

        assert result.exit_code == 0, result.output
        mock_run.assert_called_once()
        kwargs = mock_run.call_args.kwargs
        assert kwargs["repo"] == "owner/repo"
        assert kwargs["pr_number"] == 42
        assert kwargs["conversation_id"] == "c-1"
        assert not isinstance(kwargs["source_control"], ShadowSourceControl)
        assert "Review success" in result.output

    def test_cli_flags_become_overrides(self, mocker):
        load, _ = _patch_common(mocker)
        mocker.patch("prsage_cli.commands.review.run_review", return_value=_report())

        CliRunner().invoke(
            main,
            ["--config", "custom.yml", "review", "--repo", "o/r", "--pr", "1", "--batch-size", "5", "--no-context"],
        )

        args, kwargs = load.call_args
        assert args[0] == "custom.yml"
        overrides = kwargs["cli_overrides"]
        assert overrides["batch_size"] == 5
        assert overrides["rag_enabled"] is False
        assert overrides["model"] is None

    def test_shadow_wraps_source_control(self, mocker):
        _patch_common(mocker)
        mock_run = mocker.patch("prsage_cli.commands.review.run_review", return_value=_report())

        CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1", "--shadow"])

        assert isinstance(mock_run.call_args.kwargs["source_control"], ShadowSourceControl)

    def test_failed_review_exits_non_zero(self, mocker):
        _patch_common(mocker)
        failed = _report(status="failed", analyzed=0, failed=2)
        mocker.patch("prsage_cli.commands.review.run_review", return_value=failed)

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])

        assert result.exit_code == 1
        assert "Review failed" in result.output

    def test_partial_review_exits_zero(self, mocker):
        _patch_common(mocker)
        mocker.patch("prsage_cli.commands.review.run_review", return_value=_report(status="partial", failed=1))
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code == 0

    @pytest.mark.parametrize("error", [ReviewError("Review failed: Not Found"), PublishError("Could not post review")])
    def test_pipeline_errors_reported(self, mocker, error):
        _patch_common(mocker)
        mocker.patch("prsage_cli.commands.review.run_review", side_effect=error)

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])

        assert result.exit_code == 1
        assert str(error) in result.output

    def test_invalid_configuration_is_usage_error(self, mocker):
        _patch_common(mocker)
        mocker.patch("prsage_cli.commands.review.run_review", side_effect=ValueError("batch_size must be a positive"))
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code == 2
        assert "batch_size" in result.output


class TestCLIInteractive:
    def test_lists_open_prs_and_prompts(self, mocker):
        _patch_common(mocker)
        mocker.patch(
            "prsage_cli.commands.review.get_pull_requests",
            return_value=[MagicMock(number=7, title="Add user list")],
        )
        mock_run = mocker.patch("prsage_cli.commands.review.run_review", return_value=_report())

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo"], input="7\n")

        assert "#7" in result.output
        assert mock_run.call_args.kwargs["pr_number"] == 7

    def test_no_open_prs(self, mocker):
        _patch_common(mocker)
        mocker.patch("prsage_cli.commands.review.get_pull_requests", return_value=[])
        mock_run = mocker.patch("prsage_cli.commands.review.run_review")

        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo"])

        assert "No open pull requests" in result.output
        mock_run.assert_not_called()


class TestShadowSourceControl:
    @pytest.mark.asyncio
    async def test_reads_delegate_to_github(self):
        inner = MagicMock()
        inner.get_change_set = AsyncMock(return_value="change set")
        ref = ReviewRef(repo="o/r", number=1)
        assert await ShadowSourceControl(inner).get_change_set(ref) == "change set"

    @pytest.mark.asyncio
    async def test_writes_are_printed_not_posted(self, capsys):
        inner = MagicMock()
        inner.post_comment = AsyncMock()
        inner.set_commit_status = AsyncMock()
        shadow = ShadowSourceControl(inner)
        ref = ReviewRef(repo="o/r", number=1)

        await shadow.post_comment(ref, "## AI Code Review Results")
        await shadow.set_commit_status(ref, "success", "AI review completed")

        inner.post_comment.assert_not_called()
        inner.set_commit_status.assert_not_called()
        out = capsys.readouterr().out
        assert "AI Code Review Results" in out
        assert "success: AI review completed" in out


class TestConfigCommand:
    def test_shows_merged_config_with_masked_secrets(self, mocker):
        mocker.patch(
            "prsage_core.config.load_config",
            return_value=_make_config(github_token="ghp_supersecrettoken"),
        )
        result = CliRunner().invoke(main, ["config"])
        assert result.exit_code == 0, result.output
        assert "ghp_supersecrettoken" not in result.output
        assert "max_files" in result.output

    def test_invalid_config_reported(self, mocker):
        mocker.patch("prsage_core.config.load_config", return_value={**_make_config(), "batch_size": 0})
        result = CliRunner().invoke(main, ["config"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "prsage" in result.output
