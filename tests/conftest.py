import asyncio
import json
import shlex
import sys
import textwrap
import uuid

import httpx
import pytest

from github_deploy.config import Settings
from github_deploy.errors import GitSyncError
from github_deploy.main import build_deploy_service, create_app
from github_deploy.services.status_reporter import GitHubStatusReporter

SHA = "3f786850e387550fdab836ed7e6dc881de23001b"
REPO = "acme/widget"
REPO_NAME = "widget"
SECRET = "supersecret"


class SyncASGIClient:
    def __init__(self, app):
        self._app = app

    async def _request(self, method: str, url: str, **kwargs):
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self._app, raise_app_exceptions=False),
            base_url="http://testserver",
        ) as client:
            return await client.request(method, url, **kwargs)

    def request(self, method: str, url: str, **kwargs):
        return asyncio.run(self._request(method, url, **kwargs))

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs):
        return self.request("PUT", url, **kwargs)

    def delete(self, url: str, **kwargs):
        return self.request("DELETE", url, **kwargs)


class FakeGitHub:
    """Records calls made to the GitHub REST API through httpx.MockTransport."""

    def __init__(self, status_code: int = 201):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"id": len(self.requests)})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def _bodies(self, marker: str) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if marker in r.url.path]

    @property
    def statuses(self) -> list[str]:
        return [body["state"] for body in self._bodies("/statuses/")]

    @property
    def status_bodies(self) -> list[dict]:
        return self._bodies("/statuses/")

    @property
    def comments(self) -> list[str]:
        return [body["body"] for body in self._bodies("/comments")]


class FakeGit:
    def __init__(self, error: str | None = None):
        self.error = error
        self.calls: list[list[str]] = []

    async def __call__(self, args, cwd):
        self.calls.append(list(args))
        if self.error:
            raise GitSyncError(self.error)
        return ""


@pytest.fixture()
def github_api():
    return FakeGitHub()


@pytest.fixture()
def fake_git():
    return FakeGit()


@pytest.fixture()
def repos_dir(tmp_path):
    repos = tmp_path / "repos"
    (repos / REPO_NAME).mkdir(parents=True)
    return repos


@pytest.fixture()
def deploy_script(tmp_path):
    """Write a Python deploy script and return a command line running it."""

    def _make(source: str) -> str:
        script = tmp_path / f"deploy_{uuid.uuid4().hex[:8]}.py"
        script.write_text(textwrap.dedent(source))
        return f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"

    return _make


@pytest.fixture()
def push_body():
    def _make(
        ref: str | None = "refs/heads/main",
        sha: str | None = SHA,
        repo: str | None = REPO,
        name: str | None = REPO_NAME,
        deleted: bool = False,
    ) -> bytes:
        payload: dict = {"ref": ref, "after": sha, "deleted": deleted}
        if repo is not None or name is not None:
            payload["repository"] = {"full_name": repo, "name": name}
        return json.dumps(payload).encode()

    return _make


@pytest.fixture()
def make_settings(repos_dir):
    def _make(**overrides) -> Settings:
        values = {
            "webhook_secret": SECRET,
            "github_token": "ghp_testtoken123",
            "repos_dir": str(repos_dir),
            "deploy_command": "true",
            "log_dir": None,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture()
def make_service(make_settings, github_api, fake_git, monkeypatch):
    def _make(**overrides):
        settings = make_settings(**overrides)
        reporter = GitHubStatusReporter(
            settings.github_token,
            api_url=settings.github_api_url,
            transport=github_api.transport(),
        )
        service = build_deploy_service(settings, reporter=reporter)
        monkeypatch.setattr(service.runner, "_run_git", fake_git)
        return service

    return _make


@pytest.fixture()
def make_client(make_settings, make_service):
    def _make(**overrides):
        service = make_service(**overrides)
        app = create_app(make_settings(**overrides), deploy_service=service)
        return SyncASGIClient(app), service

    return _make
