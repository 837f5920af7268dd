from fastapi import Request

from github_deploy.config import Settings
from github_deploy.services.deploy_service import DeployService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_deploy_service(request: Request) -> DeployService:
    return request.app.state.deploy_service
