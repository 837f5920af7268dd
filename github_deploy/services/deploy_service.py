"""
Deploy Service — the asynchronous half of a webhook delivery.

Runs after the HTTP response has been sent: parse the push, filter it,
take the per-branch lock, run the deploy and report every outcome to
GitHub. Nothing raised here escapes ``handle_push``.
"""

from __future__ import annotations

import asyncio
import logging
import time
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from github_deploy.errors import DeployError, DeployLaunchError, GitSyncError, RepositoryNotFoundError
from github_deploy.metrics import DEPLOY_DURATION, DEPLOYS_TOTAL
from github_deploy.services.deploy_lock import DeployLock
from github_deploy.services.deploy_runner import DeployRunner
from github_deploy.services.push_event import (
    DeployDecision,
    PushEvent,
    decode_payload,
    report_identifiers,
    should_deploy,
)
from github_deploy.services.status_reporter import UNKNOWN_REPO, UNKNOWN_SHA, GitHubStatusReporter

logger = logging.getLogger(__name__)

COMMENT_TAIL_LINES = 20


@dataclass(frozen=True)
class DeployOutcome:
    state: str
    description: str
    comment: str | None = None


def _fenced(text: str) -> str:
    return "```\n" + text + "\n```"


class DeployService:
    def __init__(
        self,
        runner: DeployRunner,
        reporter: GitHubStatusReporter,
        lock: DeployLock,
        repos_dir: str | Path,
        branches: frozenset[str] | None = None,
    ):
        self.runner = runner
        self.reporter = reporter
        self.lock = lock
        self.repos_dir = Path(repos_dir)
        self.branches = branches

    async def handle_push(self, body: bytes) -> DeployOutcome | None:
        """Process one verified webhook body.

        Returns the terminal outcome of the deploy, or None when the
        event was filtered out or the branch was already deploying.
        """
        payload: dict[str, Any] | None = None
        try:
            payload = decode_payload(body)
            event = PushEvent.model_validate(payload)
            decision = should_deploy(event, self.branches)
            if not decision.proceed:
                return None

            key = decision.deploy_key
            if not self.lock.try_acquire(key):
                logger.info("Deploy already running for %s, skipping", key)
                DEPLOYS_TOTAL.labels(repo=decision.repo_full_name, status="skipped").inc()
                return None
            try:
                return await self._deploy(decision)
            finally:
                self.lock.release(key)
        except Exception as e:
            logger.exception("Webhook error")
            repo, sha = report_identifiers(payload)
            repo = repo or UNKNOWN_REPO
            sha = sha or UNKNOWN_SHA
            detail = "".join(traceback.format_exception(type(e), e, e.__traceback__))
            outcome = DeployOutcome(
                "error",
                "Webhook internal error",
                f"🚨 Webhook internal error:\n\n{_fenced(detail.strip())}",
            )
            await self._report(repo, sha, outcome)
            return outcome

    async def _deploy(self, decision: DeployDecision) -> DeployOutcome:
        repo = decision.repo_full_name
        sha = decision.sha
        started = time.monotonic()

        outcome = await self._run(decision)

        DEPLOYS_TOTAL.labels(repo=repo, status=outcome.state).inc()
        DEPLOY_DURATION.labels(status=outcome.state).observe(time.monotonic() - started)
        await self._report(repo, sha, outcome)
        return outcome

    async def _run(self, decision: DeployDecision) -> DeployOutcome:
        repo = decision.repo_full_name
        sha = decision.sha
        repo_dir = self.repos_dir / decision.repo_name

        try:
            await asyncio.to_thread(self.runner.ensure_repository, repo_dir)
        except RepositoryNotFoundError as e:
            logger.warning("%s: %s", e.description, repo_dir)
            return DeployOutcome("error", e.description)

        await self.reporter.set_status(repo, sha, "pending", "Deploy started")

        try:
            result = await self.runner.run(repo_dir, decision.repo_name, sha)
        except (GitSyncError, DeployLaunchError) as e:
            return self._error_outcome(e)

        if result.ok:
            return DeployOutcome("success", "Deploy complete")

        tail = "\n".join(result.output.tail(COMMENT_TAIL_LINES))
        return DeployOutcome(
            "failure",
            "Deploy failed",
            f"🚨 Deploy failed (exit code: {result.exit_code})\n\n{_fenced(tail)}",
        )

    def _error_outcome(self, error: DeployError) -> DeployOutcome:
        logger.error("%s: %s", error.description, error.detail)
        return DeployOutcome(
            "error",
            error.description,
            f"🚨 {error.description}:\n\n{_fenced(error.detail or '')}",
        )

    async def _report(self, repo: str, sha: str, outcome: DeployOutcome) -> None:
        await self.reporter.set_status(repo, sha, outcome.state, outcome.description)
        if outcome.comment:
            await self.reporter.add_comment(repo, sha, outcome.comment)
