import uvicorn

from github_deploy.config import settings


def main() -> None:
    uvicorn.run("github_deploy.main:app", host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
