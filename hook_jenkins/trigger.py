"""
Triggering Jenkins builds for successful deploys and reporting on them.

For each job name configured on the deploy's stage, BuildTrigger optionally
reconciles the job config, triggers a build and returns either the build
number or an error message. A failure of one job never stops the remaining
job names of the same deploy.
"""

import asyncio
import logging
import uuid
from typing import Any

from hook_common.cache import Cache
from hook_common.models import Deploy, TriggeredJob
from hook_common.repository import TriggeredJobRepository

from .client import BuildStartTimeout, JenkinsApiError, JenkinsClient, JenkinsNotFound
from .emails import notify_emails
from .reconciler import BUILD_PARAMETERS_PREFIX, ConfigReconciler, JobConfig, parse_config
from .settings import DEFAULT_BUILD_START_TIMEOUT

logger = logging.getLogger(__name__)

JOB_CACHE_TIME = 24 * 60 * 60  # 1 day
JOB_CACHE_RACE_TTL = 5 * 60
NOT_FOUND_URL = "#"


class BuildTrigger:
    """
    Triggers one Jenkins job for one deploy.

    Config reconciliation only happens when the stage enables
    jenkins_build_params; the job's config.xml is cached under
    "<job_name>_conf" and invalidated after every post.
    """

    def __init__(
        self,
        job_name: str,
        deploy: Deploy,
        client: JenkinsClient,
        cache: Cache,
        build_start_timeout: float = DEFAULT_BUILD_START_TIMEOUT,
        email_domain: str | None = None,
    ):
        self.job_name = job_name
        self.deploy = deploy
        self.client = client
        self.cache = cache
        self.build_start_timeout = build_start_timeout
        self.email_domain = email_domain
        self.reconciler = ConfigReconciler(deploy.project_name, deploy.stage.name)

    @property
    def cache_key(self) -> str:
        return f"{self.job_name}_conf"

    def job_config(self) -> JobConfig:
        """Fetch (through the cache) and parse the job's config.xml."""
        text = self.cache.fetch(
            self.cache_key,
            lambda: self.client.get_config(self.job_name),
            expires_in=JOB_CACHE_TIME,
            race_condition_ttl=JOB_CACHE_RACE_TTL,
        )
        return parse_config(text)

    def build_job_config(self) -> JobConfig | None:
        """
        Reconcile a freshly fetched config.

        Returns:
            Updated config, or None if the fresh config needs no changes
        """
        self.cache.delete(self.cache_key)
        config = self.job_config()
        changes = self.reconciler.check_config(config)
        if not changes.has_changes:
            return None
        logger.info(
            f"Updating config of Jenkins job {self.job_name}: "
            f"missing parameters={list(changes.missing_params)}, "
            f"description stale={changes.description_stale}"
        )
        return self.reconciler.apply(config, changes)

    def post_job_config(self, config: JobConfig) -> None:
        self.client.post_config(self.job_name, config.to_xml())
        self.cache.delete(self.cache_key)

    def reconcile_config(self) -> None:
        """Post an updated config if the cached one lacks managed content."""
        changes = self.reconciler.check_config(self.job_config())
        if changes.has_changes:
            new_config = self.build_job_config()
            if new_config is not None:
                self.post_job_config(new_config)

    def build_params(self) -> dict[str, str]:
        """Parameters sent with the build, keyed by their unprefixed names."""
        deploy = self.deploy
        return {
            "buildStartedBy": deploy.user.name,
            "originatedFrom": f"{deploy.project_name}_{deploy.stage.name}_{deploy.reference}",
            "commit": deploy.commit or "",
            "tag": deploy.tag or "",
            "deployUrl": deploy.url or "",
            "emails": notify_emails(deploy, self.email_domain),
        }

    def build(self) -> int | str:
        """
        Reconcile the job config if enabled, then trigger the build.

        Jenkins errors while fetching or posting the config are reported the
        same way as trigger failures, so an unknown job name only fails its
        own record.

        Returns:
            int build number on success, otherwise an error message

        Raises:
            JobConfigError: If the job config is not well-formed XML
        """
        params = self.build_params()

        try:
            if self.deploy.stage.jenkins_build_params:
                self.reconcile_config()
                params = {BUILD_PARAMETERS_PREFIX + key: value for key, value in params.items()}
            return self.client.build(
                self.job_name, params, build_start_timeout=self.build_start_timeout
            )
        except BuildStartTimeout as e:
            message = (
                f"Jenkins '{self.job_name}' build failed to start in a timely manner.  "
                f"{type(e).__name__} {e}"
            )
        except JenkinsApiError as e:
            message = (
                f"Problem while waiting for '{self.job_name}' to start.  "
                f"{type(e).__name__} {e}"
            )
        logger.warning(message)
        return message


class JobStatusReporter:
    """
    Reports result and URL of builds of one Jenkins job.

    Build details are fetched once per build id and reused, so asking for
    both status and url costs a single request.
    """

    def __init__(self, job_name: str, client: JenkinsClient):
        self.job_name = job_name
        self.client = client
        self._responses: dict[int, dict[str, Any]] = {}

    def status(self, build_id: int) -> str | None:
        """Build result (None while the build is still running)."""
        return self._response(build_id).get("result")

    def url(self, build_id: int) -> str:
        return self._response(build_id).get("url") or NOT_FOUND_URL

    def _response(self, build_id: int) -> dict[str, Any]:
        if build_id not in self._responses:
            try:
                details = self.client.get_build_details(self.job_name, build_id)
            except JenkinsNotFound as e:
                # Build history may have been pruned on the Jenkins side.
                details = {"result": str(e), "url": NOT_FOUND_URL}
            self._responses[build_id] = details
        return self._responses[build_id]


async def on_deploy_succeeded(
    deploy: Deploy,
    client: JenkinsClient,
    cache: Cache,
    repository: TriggeredJobRepository,
    build_start_timeout: float = DEFAULT_BUILD_START_TIMEOUT,
    email_domain: str | None = None,
) -> list[TriggeredJob]:
    """
    Trigger every Jenkins job configured on the deploy's stage.

    Does nothing unless the deploy succeeded. Jobs are triggered one after
    another; each gets its own persisted TriggeredJob record.

    Returns:
        The created records, in job name order
    """
    if not deploy.succeeded:
        return []

    records = []
    for job_name in deploy.stage.job_names:
        trigger = BuildTrigger(
            job_name,
            deploy,
            client,
            cache,
            build_start_timeout=build_start_timeout,
            email_domain=email_domain,
        )
        # requests is blocking; keep the event loop free
        outcome = await asyncio.to_thread(trigger.build)

        record = TriggeredJob.from_outcome(
            id=str(uuid.uuid4()), name=job_name, deploy_id=deploy.id, outcome=outcome
        )
        await repository.create_triggered_job(record)
        logger.info(
            f"Deploy {deploy.id}: Jenkins job {job_name} -> "
            f"{record.jenkins_job_id if record.started else record.status}"
        )
        records.append(record)

    return records
