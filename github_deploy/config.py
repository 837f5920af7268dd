import os
import shlex

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, model_validator

load_dotenv()


def _env_optional(name: str) -> str | None:
    return os.getenv(name) or None


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))

    # Webhook authentication; empty disables signature verification
    webhook_secret: str = os.getenv("WEBHOOK_SECRET", "")

    # GitHub status reporting; no token disables it
    github_token: str | None = _env_optional("GITHUB_TOKEN")
    github_api_url: str = os.getenv("GITHUB_API_URL", "https://api.github.com")
    status_context: str = os.getenv("STATUS_CONTEXT", "github-deploy")

    # Deploy targets
    repos_dir: str = os.getenv("REPOS_DIR", "repos")
    log_dir: str | None = _env_optional("LOG_DIR")
    deploy_command: str = os.getenv("DEPLOY_COMMAND", "just github-deploy")
    deploy_branches: str = os.getenv("DEPLOY_BRANCHES", "main,master")
    git_remote: str = os.getenv("GIT_REMOTE", "origin")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @model_validator(mode="after")
    def validate_runtime_values(self) -> "Settings":
        if not self.deploy_command_args:
            raise ValueError("DEPLOY_COMMAND must not be empty")
        if not 0 < self.port < 65536:
            raise ValueError(f"PORT must be between 1 and 65535, got {self.port}")
        return self

    @property
    def deploy_command_args(self) -> list[str]:
        return shlex.split(self.deploy_command)

    @property
    def branches(self) -> frozenset[str]:
        return frozenset(b.strip() for b in self.deploy_branches.split(",") if b.strip())

    @property
    def signature_required(self) -> bool:
        return bool(self.webhook_secret)

    @property
    def reporting_enabled(self) -> bool:
        return bool(self.github_token)


settings = Settings()
