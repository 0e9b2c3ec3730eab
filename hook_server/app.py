import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from hook_common.cache import Cache, MemoryCache
from hook_common.models import Deploy
from hook_common.repository import TriggeredJobRepository
from hook_jenkins.client import JenkinsApiError, JenkinsClient
from hook_jenkins.reconciler import JobConfigError
from hook_jenkins.settings import JenkinsSettings
from hook_jenkins.trigger import NOT_FOUND_URL, JobStatusReporter, on_deploy_succeeded
from hook_persistence.sqlite_repository import SQLiteTriggeredJobRepository

logger = logging.getLogger(__name__)

# Global instances (repository at startup, Jenkins client lazily on first use)
repository: TriggeredJobRepository | None = None
jenkins_client: JenkinsClient | None = None
settings: JenkinsSettings | None = None
cache: Cache = MemoryCache()


def get_database_path() -> str:
    """
    Get the database path from environment or use default.

    Returns:
        Path to the SQLite database file

    Environment variables:
    - HOOK_DB_PATH: Custom database path (useful for testing)
    """
    return os.environ.get("HOOK_DB_PATH", "hook_jobs.db")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI app.

    Handles startup and shutdown events:
    - Startup: Connect to the database and create the schema
    - Shutdown: Close database connections
    """
    global repository

    db_path = get_database_path()
    repository = SQLiteTriggeredJobRepository(db_path)
    await repository.initialize()
    logger.info(f"Using database {db_path}")

    yield

    if repository:
        await repository.close()


app = FastAPI(lifespan=lifespan)


def get_repository() -> TriggeredJobRepository:
    """
    Get the global repository instance.

    Raises:
        RuntimeError: If repository is not initialized
    """
    if repository is None:
        raise RuntimeError("Repository not initialized")
    return repository


def get_settings() -> JenkinsSettings:
    """Get Jenkins settings, reading the environment on first use."""
    global settings
    if settings is None:
        settings = JenkinsSettings.from_env()
    return settings


def get_jenkins_client() -> JenkinsClient:
    """Get the process-wide Jenkins client, creating it on first use."""
    global jenkins_client
    if jenkins_client is None:
        jenkins_settings = get_settings()
        jenkins_client = JenkinsClient(
            jenkins_settings.url, jenkins_settings.username, jenkins_settings.api_key
        )
    return jenkins_client


def get_jenkins_client_factory() -> Callable[[], JenkinsClient]:
    """
    Get a callable returning the Jenkins client.

    Used by routes that only contact Jenkins for some records, so that
    missing Jenkins settings do not fail the others.
    """
    return get_jenkins_client


def get_cache() -> Cache:
    return cache


@app.exception_handler(JenkinsApiError)
async def jenkins_error_handler(request: Request, exc: JenkinsApiError) -> JSONResponse:
    logger.error(f"Jenkins error on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(JobConfigError)
async def job_config_error_handler(request: Request, exc: JobConfigError) -> JSONResponse:
    logger.error(f"Invalid Jenkins job config on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.get("/health")
async def health_check() -> dict[str, str]:
    """
    Health check endpoint.

    Returns:
        Dictionary with status="ok" if server is running
    """
    return {"status": "ok"}


@app.post("/deploys")
async def deploy_finished(
    payload: dict[str, Any] = Body(...),
    repo: TriggeredJobRepository = Depends(get_repository),
    client: JenkinsClient = Depends(get_jenkins_client),
    job_cache: Cache = Depends(get_cache),
    jenkins_settings: JenkinsSettings = Depends(get_settings),
) -> list[dict[str, Any]]:
    """
    Notify the hook that a deploy finished.

    Triggers the stage's Jenkins jobs when the deploy succeeded and returns
    the records created (an empty list for any other deploy status).

    Raises:
        HTTPException: 422 if the payload lacks required deploy fields
    """
    try:
        deploy = Deploy.from_dict(payload)
    except (KeyError, TypeError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid deploy payload: {e!r}")

    records = await on_deploy_succeeded(
        deploy,
        client,
        job_cache,
        repo,
        build_start_timeout=jenkins_settings.build_start_timeout,
        email_domain=jenkins_settings.email_domain,
    )
    return [record.to_dict() for record in records]


@app.get("/deploys/{deploy_id}/jenkins-jobs")
async def list_deploy_jobs(
    deploy_id: str,
    repo: TriggeredJobRepository = Depends(get_repository),
) -> list[dict[str, Any]]:
    """List the Jenkins jobs triggered for a deploy."""
    records = await repo.list_deploy_jobs(deploy_id)
    return [record.to_dict() for record in records]


@app.get("/jenkins-jobs/{record_id}")
async def get_jenkins_job(
    record_id: str,
    repo: TriggeredJobRepository = Depends(get_repository),
    jenkins_client_factory: Callable[[], JenkinsClient] = Depends(get_jenkins_client_factory),
) -> dict[str, Any]:
    """
    Get a triggered job record with its current Jenkins result and URL.

    Records that never started report their stored status and a "#" URL
    without contacting Jenkins.

    Raises:
        HTTPException: 404 if record_id not found
    """
    record = await repo.get_triggered_job(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Jenkins job not found")

    if not record.started:
        return {**record.to_dict(), "result": record.status, "url": NOT_FOUND_URL}

    reporter = JobStatusReporter(record.name, jenkins_client_factory())
    result = await asyncio.to_thread(reporter.status, record.jenkins_job_id)
    return {**record.to_dict(), "result": result, "url": reporter.url(record.jenkins_job_id)}
