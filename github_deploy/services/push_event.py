"""Event Filter — parse push payloads and decide whether they deploy."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_BRANCHES = frozenset({"main", "master"})

_SAFE_NAME = re.compile(r"^[A-Za-z0-9._-]+$")
_COMMIT_SHA = re.compile(r"^[0-9a-fA-F]{4,64}$")


def is_safe_name(value: str) -> bool:
    """True for a single path component usable under the repos or log dir."""
    return bool(_SAFE_NAME.match(value)) and value not in (".", "..")


class RepositoryInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    full_name: str | None = None
    name: str | None = None


class PushEvent(BaseModel):
    """The subset of a GitHub push payload used for deploys.

    Every field is optional so that a payload which is valid JSON but
    not a usable push still yields whatever identifiers it carries.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    ref: str | None = None
    after: str | None = None
    deleted: bool = False
    repository: RepositoryInfo | None = None

    @classmethod
    def from_body(cls, body: bytes) -> PushEvent:
        return cls.model_validate(decode_payload(body))

    @property
    def repo_full_name(self) -> str | None:
        return self.repository.full_name if self.repository else None

    @property
    def repo_name(self) -> str | None:
        return self.repository.name if self.repository else None


def decode_payload(body: bytes) -> dict[str, Any]:
    payload = json.loads(body.decode("utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def report_identifiers(payload: dict[str, Any] | None) -> tuple[str | None, str | None]:
    """Best-effort repository full name and commit id from a decoded payload.

    Used when the payload did not validate as a PushEvent; each value is
    kept only if it is a non-empty string.
    """
    if not payload:
        return None, None
    repository = payload.get("repository")
    full_name = repository.get("full_name") if isinstance(repository, dict) else None
    sha = payload.get("after")
    return (
        full_name if isinstance(full_name, str) and full_name else None,
        sha if isinstance(sha, str) and sha else None,
    )


@dataclass(frozen=True)
class DeployDecision:
    proceed: bool
    reason: str = ""
    branch: str | None = None
    repo_full_name: str | None = None
    repo_name: str | None = None
    sha: str | None = None

    @property
    def deploy_key(self) -> str:
        return f"{self.repo_full_name}:{self.branch}"


def should_deploy(event: PushEvent, branches: frozenset[str] | None = None) -> DeployDecision:
    allowed = DEFAULT_BRANCHES if branches is None else branches

    if not event.ref or not event.after or not event.repo_full_name or not event.repo_name or event.deleted:
        logger.info("Ignoring non-push event, incomplete payload, or deletion event")
        return DeployDecision(proceed=False, reason="Not a deployable push")

    branch = event.ref.split("/")[-1]
    decision = DeployDecision(
        proceed=True,
        branch=branch,
        repo_full_name=event.repo_full_name,
        repo_name=event.repo_name,
        sha=event.after,
    )
    logger.info("Push to %s:%s (%s)", event.repo_full_name, branch, event.after[:7])

    if branch not in allowed:
        logger.info("Ignoring branch: %s", branch)
        return _rejected(decision, f"Branch {branch} is not deployed")
    if not is_safe_name(event.repo_name):
        logger.warning("Ignoring push with unsafe repository name %r", event.repo_name)
        return _rejected(decision, "Unsafe repository name")
    if not _COMMIT_SHA.match(event.after):
        logger.warning("Ignoring push with malformed commit id %r", event.after)
        return _rejected(decision, "Malformed commit id")
    return decision


def _rejected(decision: DeployDecision, reason: str) -> DeployDecision:
    return DeployDecision(
        proceed=False,
        reason=reason,
        branch=decision.branch,
        repo_full_name=decision.repo_full_name,
        repo_name=decision.repo_name,
        sha=decision.sha,
    )
