"""GitHub pull requests as the source-control collaborator of the pipeline.

PyGithub is synchronous, so every call is pushed onto a worker thread with
``asyncio.to_thread`` to keep the event loop free while GitHub responds.
"""

from __future__ import annotations

import asyncio
import logging

from github import Github, GithubException

from prsage_core.errors import SourceControlError
from prsage_core.models import ChangeSet, FileChange, ReviewMetadata, ReviewRef

logger = logging.getLogger(__name__)

# GitHub commit statuses know pending/success/failure/error only.
_GITHUB_STATES = {
    "pending": "pending",
    "running": "pending",
    "success": "success",
    "failed": "failure",
}


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def to_change_set(files) -> ChangeSet:
    """Map PyGithub PullRequestFile objects onto an immutable ChangeSet, sorted by path."""
    changes = [
        FileChange(path=f.filename, diff=f.patch or "", deleted=f.status == "removed")
        for f in sorted(files, key=lambda f: f.filename)
    ]
    return ChangeSet(files=tuple(changes))


class GitHubSourceControl:
    def __init__(self, repo, status_context: str = "prsage/ai-review"):
        self.repo = repo
        self.status_context = status_context
        self._pulls: dict[int, object] = {}

    async def _call(self, what: str, fn, *args, **kwargs):
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except GithubException as e:
            raise SourceControlError(f"GitHub {what} failed: {e.data or e}", status=e.status) from e

    async def _pull(self, ref: ReviewRef):
        if ref.number not in self._pulls:
            self._pulls[ref.number] = await self._call("pull request lookup", get_pull, self.repo, ref.number)
        return self._pulls[ref.number]

    async def get_change_set(self, ref: ReviewRef) -> ChangeSet:
        pr = await self._pull(ref)
        files = await self._call("file listing", lambda: list(pr.get_files()))
        change_set = to_change_set(files)
        logger.info("Retrieved %d changed file(s) for %s", len(change_set), ref)
        return change_set

    async def get_metadata(self, ref: ReviewRef) -> ReviewMetadata:
        pr = await self._pull(ref)
        return ReviewMetadata(title=pr.title or "", description=pr.body or "", head_sha=pr.head.sha)

    async def post_comment(self, ref: ReviewRef, text: str) -> None:
        pr = await self._pull(ref)
        await self._call("comment", pr.create_issue_comment, text)
        logger.info("Posted review comment on %s", ref)

    async def set_commit_status(self, ref: ReviewRef, state: str, description: str) -> None:
        if state not in _GITHUB_STATES:
            raise ValueError(f"Unknown commit status state: {state!r}")
        pr = await self._pull(ref)
        commit = await self._call("commit lookup", self.repo.get_commit, pr.head.sha)
        await self._call(
            "commit status",
            commit.create_status,
            state=_GITHUB_STATES[state],
            description=description[:140],  # GitHub rejects longer descriptions
            context=self.status_context,
        )
        logger.debug("Set commit status %s on %s: %s", state, ref, description)
