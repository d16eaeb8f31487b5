"""review command: run the AI review pipeline on a pull request."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markdown import Markdown

from prsage_core.errors import PublishError, ReviewError
from prsage_core.gh.pull_request import GitHubSourceControl, get_pull_requests, get_repo
from prsage_core.models import ReviewRef
from prsage_core.reviewer import run_review

console = Console()

_STATUS_STYLE = {"success": "green", "partial": "yellow", "empty": "cyan", "failed": "red"}


class ShadowSourceControl:
    """Reads the real pull request but prints everything it would post."""

    def __init__(self, inner: GitHubSourceControl):
        self.inner = inner

    async def get_change_set(self, ref: ReviewRef):
        return await self.inner.get_change_set(ref)

    async def get_metadata(self, ref: ReviewRef):
        return await self.inner.get_metadata(ref)

    async def post_comment(self, ref: ReviewRef, text: str) -> None:
        console.rule(f"[bold]Shadow review for {ref} (not posted)[/bold]")
        console.print(Markdown(text))
        console.rule()

    async def set_commit_status(self, ref: ReviewRef, state: str, description: str) -> None:
        console.print(f"[dim]commit status → {state}: {description}[/dim]")


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Omit to list open PRs interactively.",
)
@click.option(
    "--model",
    type=click.Choice(["anthropic", "openai", "dify"]),
    default=None,
    help="AI analysis provider. Overrides config file.",
)
@click.option("--batch-size", type=int, default=None, help="Concurrent analysis calls per batch.")
@click.option("--timeout", "review_timeout", type=float, default=None, help="Overall review deadline in seconds.")
@click.option("--no-context", is_flag=True, help="Skip best-practice context retrieval.")
@click.option("--conversation-id", default=None, help="Continue an existing analysis conversation (Dify only).")
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print the report instead of posting it to GitHub.",
)
@click.pass_context
def review_cmd(
    ctx,
    repo: str,
    pr_number: int | None,
    model: str | None,
    batch_size: int | None,
    review_timeout: float | None,
    no_context: bool,
    conversation_id: str | None,
    shadow: bool,
):
    """Review a pull request with AI and post one summary comment.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token
      ANTHROPIC_API_KEY    Required when using --model anthropic
      OPENAI_API_KEY       Required when using --model openai
      DIFY_API_KEY         Required when using --model dify; enables remote context
    """
    from prsage_core.config import load_config

    config_path = ctx.obj.get("config_path", ".prsage.yml") if ctx.obj else ".prsage.yml"
    config = load_config(
        config_path,
        cli_overrides={
            "model": model,
            "batch_size": batch_size,
            "review_timeout": review_timeout,
            "rag_enabled": False if no_context else None,
        },
    )

    if not config.get("github_token"):
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN.\nCreate a token at https://github.com/settings/tokens"
        )
    key_for_model = {"anthropic": "anthropic_api_key", "openai": "openai_api_key", "dify": "dify_api_key"}
    key = key_for_model.get(config["model"])
    if key and not config.get(key):
        raise click.UsageError(f"{key.upper()} environment variable is not set.")

    this_repo = get_repo(repo, token=config["github_token"])

    if pr_number is None:
        prs = list(get_pull_requests(this_repo))
        if not prs:
            console.print("[yellow]No open pull requests found.[/yellow]")
            return
        console.print("\nOpen pull requests:")
        for pr in prs:
            console.print(f"  [bold]#{pr.number}[/bold]  {pr.title}")
        pr_number = click.prompt("\nEnter the pull request number", type=int)

    source_control = GitHubSourceControl(this_repo, status_context=config.get("status_context", "prsage/ai-review"))
    if shadow:
        source_control = ShadowSourceControl(source_control)

    console.print(f"Reviewing [bold]{repo}#{pr_number}[/bold] with {config['model']}...")
    try:
        report = run_review(
            repo=repo,
            pr_number=pr_number,
            config=config,
            conversation_id=conversation_id,
            source_control=source_control,
        )
    except ValueError as e:
        raise click.UsageError(str(e))
    except (ReviewError, PublishError) as e:
        raise click.ClickException(str(e))

    style = _STATUS_STYLE.get(report.status, "white")
    console.print(
        f"[{style}]Review {report.status}[/{style}]: "
        f"{report.analyzed}/{report.eligible} file(s) analyzed, {report.failed} failed, "
        f"{len(report.skipped)} skipped, {len(report.timed_out)} timed out "
        f"({report.elapsed:.1f}s)"
    )
    if report.status == "failed":
        ctx.exit(1)
