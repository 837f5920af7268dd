"""Deploy log retrieval — serve captured output by repository and commit."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from github_deploy.api.deps import get_settings
from github_deploy.config import Settings
from github_deploy.services.push_event import is_safe_name

router = APIRouter(tags=["logs"])


@router.get("/{repo_name}/{filename}")
def get_deploy_log(
    repo_name: str,
    filename: str,
    settings: Settings = Depends(get_settings),
) -> FileResponse:
    if not settings.log_dir:
        raise HTTPException(status_code=405, detail="Method Not Allowed", headers={"Allow": "POST"})

    sha = filename.removesuffix(".txt")
    if sha == filename or not is_safe_name(repo_name) or not is_safe_name(sha):
        raise HTTPException(status_code=404, detail="Log file not found")

    log_path = Path(settings.log_dir) / repo_name / f"{sha}.txt"
    if not log_path.is_file():
        raise HTTPException(status_code=404, detail="Log file not found")
    return FileResponse(log_path, media_type="text/plain")
