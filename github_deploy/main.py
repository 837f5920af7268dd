import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from github_deploy.api.logs import router as logs_router
from github_deploy.api.webhooks import router as webhooks_router
from github_deploy.config import Settings
from github_deploy.config import settings as default_settings
from github_deploy.errors import register_error_handlers
from github_deploy.logging import configure_logging
from github_deploy.services.deploy_lock import DeployLock
from github_deploy.services.deploy_runner import DeployRunner
from github_deploy.services.deploy_service import DeployService
from github_deploy.services.status_reporter import GitHubStatusReporter

logger = logging.getLogger(__name__)


def build_deploy_service(settings: Settings, reporter: GitHubStatusReporter | None = None) -> DeployService:
    runner = DeployRunner(
        settings.deploy_command_args,
        log_dir=settings.log_dir,
        git_remote=settings.git_remote,
    )
    if reporter is None:
        reporter = GitHubStatusReporter(
            settings.github_token,
            api_url=settings.github_api_url,
            context=settings.status_context,
        )
    return DeployService(
        runner,
        reporter,
        DeployLock(),
        repos_dir=settings.repos_dir,
        branches=settings.branches,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("GitHub webhook server listening on port %d", settings.port)
    logger.info("Signature verification: %s", "enabled" if settings.signature_required else "disabled")
    logger.info("GitHub status updates: %s", "enabled" if settings.reporting_enabled else "disabled")
    yield
    running = app.state.deploy_service.lock.running()
    if running:
        logger.warning("Shutting down with deploys still running: %s", ", ".join(running))


def create_app(settings: Settings | None = None, deploy_service: DeployService | None = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level)

    app = FastAPI(title="GitHub Deploy Webhook", lifespan=lifespan)
    app.state.settings = settings
    app.state.deploy_service = deploy_service or build_deploy_service(settings)
    register_error_handlers(app)

    @app.get("/health")
    def health_check(request: Request):
        return {
            "status": "ok",
            "running_deploys": request.app.state.deploy_service.lock.running(),
        }

    @app.get("/metrics")
    def metrics():
        data = generate_latest()
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    # Catch-all POST route, registered last.
    app.include_router(logs_router)
    app.include_router(webhooks_router)
    return app


app = create_app()
