"""Status Reporter — GitHub commit statuses and commit comments."""

from __future__ import annotations

import logging

import httpx

from github_deploy.metrics import STATUS_REPORTS_TOTAL

logger = logging.getLogger(__name__)

UNKNOWN_REPO = "unknown/unknown"
UNKNOWN_SHA = "unknown"

STATUS_STATES = ("pending", "success", "failure", "error")
DESCRIPTION_LIMIT = 140
COMMENT_LIMIT = 65536
TIMEOUT_SECONDS = 10.0


class GitHubStatusReporter:
    def __init__(
        self,
        token: str | None,
        api_url: str = "https://api.github.com",
        context: str = "github-deploy",
        timeout: float = TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.context = context
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    async def set_status(self, repo: str | None, sha: str | None, state: str, description: str) -> bool:
        """Post a commit status; returns False when skipped or rejected."""
        if state not in STATUS_STATES:
            raise ValueError(f"Unknown commit status state: {state}")
        if not self._can_report(repo, sha):
            return False
        return await self._post(
            "status",
            f"/repos/{repo}/statuses/{sha}",
            {
                "state": state,
                "description": description[:DESCRIPTION_LIMIT],
                "context": self.context,
            },
        )

    async def add_comment(self, repo: str | None, sha: str | None, body: str) -> bool:
        if not self._can_report(repo, sha):
            return False
        return await self._post(
            "comment",
            f"/repos/{repo}/commits/{sha}/comments",
            {"body": body[:COMMENT_LIMIT]},
        )

    def _can_report(self, repo: str | None, sha: str | None) -> bool:
        if not self.enabled:
            return False
        if not repo or not sha or repo == UNKNOWN_REPO or sha == UNKNOWN_SHA:
            return False
        return True

    async def _post(self, kind: str, path: str, body: dict[str, str]) -> bool:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "github-deploy-webhook",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(path, json=body, headers=headers)
        except httpx.HTTPError as e:
            STATUS_REPORTS_TOTAL.labels(kind=kind, result="error").inc()
            logger.error("GitHub API error posting %s to %s: %s", kind, path, e)
            return False
        except Exception:
            STATUS_REPORTS_TOTAL.labels(kind=kind, result="error").inc()
            logger.exception("Failed to post GitHub %s to %s", kind, path)
            return False

        if resp.status_code in (200, 201):
            STATUS_REPORTS_TOTAL.labels(kind=kind, result="ok").inc()
            logger.debug("GitHub %s posted to %s", kind, path)
            return True
        STATUS_REPORTS_TOTAL.labels(kind=kind, result="rejected").inc()
        logger.warning("GitHub %s API returned %d: %s", kind, resp.status_code, resp.text[:500])
        return False
