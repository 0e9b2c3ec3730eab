"""
Thin HTTP client for the parts of the Jenkins API the hook needs.

Only static credentials are supported (username + API token via basic auth).
The client keeps no per-call state, so one instance can be shared by every
trigger in a process.
"""

import logging
import time
from typing import Any
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)


class JenkinsApiError(Exception):
    """Jenkins could not be reached or answered with an error."""


class JenkinsNotFound(JenkinsApiError):
    """The requested job or build does not exist (HTTP 404)."""


class BuildStartTimeout(TimeoutError):
    """A queued build did not get a build number before the deadline."""


class JenkinsClient:
    """
    Issues the four Jenkins calls used by the hook:
    get config, post config, trigger build, get build details.
    """

    def __init__(
        self,
        server_url: str,
        username: str,
        api_key: str,
        timeout: float = 30,
        poll_interval: float = 2.0,
        session: requests.Session | None = None,
    ):
        """
        Initialize the client.

        Args:
            server_url: Jenkins base URL, e.g. https://jenkins.example.com
            username: Jenkins user
            api_key: API token of that user
            timeout: Per-request HTTP timeout in seconds
            poll_interval: Seconds between queue polls while waiting for a build
            session: Optional pre-configured requests session
        """
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.session = session or requests.Session()
        self.session.auth = (username, api_key)

    def job_url(self, job_name: str) -> str:
        """URL of a job; folder jobs ("team/app") map to /job/team/job/app."""
        path = "/".join(f"job/{quote(part, safe='')}" for part in job_name.split("/"))
        return f"{self.server_url}/{path}"

    def get_config(self, job_name: str) -> str:
        """
        Fetch a job's config.xml.

        Raises:
            JenkinsNotFound: If the job does not exist
            JenkinsApiError: On any other failure
        """
        response = self._request("GET", f"{self.job_url(job_name)}/config.xml")
        return response.text

    def post_config(self, job_name: str, config_xml: str) -> None:
        """Replace a job's config.xml."""
        self._request(
            "POST",
            f"{self.job_url(job_name)}/config.xml",
            data=config_xml.encode("utf-8"),
            headers={"Content-Type": "application/xml; charset=utf-8"},
        )
        logger.info(f"Posted updated config for Jenkins job {job_name}")

    def build(
        self,
        job_name: str,
        parameters: dict[str, Any] | None = None,
        build_start_timeout: float = 60,
    ) -> int:
        """
        Trigger a build and wait until Jenkins assigns it a build number.

        Args:
            job_name: Jenkins job to build
            parameters: Build parameters (uses /buildWithParameters when given)
            build_start_timeout: Seconds to wait for the queued build to start

        Returns:
            int: Jenkins build number

        Raises:
            BuildStartTimeout: If no build number appears in time
            JenkinsApiError: If triggering or polling fails
        """
        endpoint = "buildWithParameters" if parameters else "build"
        response = self._request(
            "POST", f"{self.job_url(job_name)}/{endpoint}", data=parameters or None
        )

        queue_url = response.headers.get("Location")
        if not queue_url:
            raise JenkinsApiError(f"Jenkins did not return a queue item for '{job_name}'")

        logger.debug(f"Build of {job_name} queued at {queue_url}")
        return self._wait_for_build(job_name, queue_url, build_start_timeout)

    def get_build_details(self, job_name: str, build_id: int) -> dict[str, Any]:
        """
        Fetch build details (result, url, ...) for one build.

        Raises:
            JenkinsNotFound: If the build is unknown (e.g. pruned history)
        """
        return self._get_json(f"{self.job_url(job_name)}/{build_id}/api/json")

    def _wait_for_build(self, job_name: str, queue_url: str, timeout: float) -> int:
        deadline = time.monotonic() + timeout
        item_url = f"{queue_url.rstrip('/')}/api/json"

        while True:
            item = self._get_json(item_url)
            if item.get("cancelled"):
                raise JenkinsApiError(f"Queued build of '{job_name}' was cancelled")

            executable = item.get("executable")
            if executable and executable.get("number") is not None:
                return int(executable["number"])

            if time.monotonic() >= deadline:
                raise BuildStartTimeout(
                    f"Build of '{job_name}' did not start within {timeout} seconds"
                )
            time.sleep(self.poll_interval)

    def _get_json(self, url: str) -> dict[str, Any]:
        response = self._request("GET", url)
        try:
            return response.json()
        except ValueError as e:
            # e.g. an HTML login page served by a proxy in front of Jenkins
            raise JenkinsApiError(f"Jenkins returned invalid JSON for {url}: {e}") from e

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            raise JenkinsApiError(f"Error talking to Jenkins: {e}") from e

        if response.status_code == 404:
            raise JenkinsNotFound(
                f"Requested component is not found on the Jenkins CI server: {url}"
            )
        if response.status_code >= 400:
            raise JenkinsApiError(
                f"Jenkins returned HTTP {response.status_code} for {method} {url}"
            )
        return response
