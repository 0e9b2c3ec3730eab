"""
Process configuration for the Jenkins integration.

Environment variables:
- JENKINS_URL: Base URL of the Jenkins server
- JENKINS_USERNAME: Jenkins user the hook acts as
- JENKINS_API_KEY: API token of that user
- JENKINS_BUILD_START_TIMEOUT: Seconds to wait for a triggered build to start (default: 60)
- EMAIL_DOMAIN: Only notify addresses in this domain (default: unset, no restriction)
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_BUILD_START_TIMEOUT = 60


@dataclass(frozen=True)
class JenkinsSettings:
    url: str
    username: str
    api_key: str
    build_start_timeout: float = DEFAULT_BUILD_START_TIMEOUT
    email_domain: str | None = None

    @classmethod
    def from_env(cls) -> "JenkinsSettings":
        """
        Read settings from the environment.

        Raises:
            RuntimeError: If one of the Jenkins credentials is not set
        """
        missing = [
            name
            for name in ("JENKINS_URL", "JENKINS_USERNAME", "JENKINS_API_KEY")
            if not os.environ.get(name)
        ]
        if missing:
            raise RuntimeError(f"Missing Jenkins configuration: {', '.join(missing)}")

        return cls(
            url=os.environ["JENKINS_URL"],
            username=os.environ["JENKINS_USERNAME"],
            api_key=os.environ["JENKINS_API_KEY"],
            build_start_timeout=get_build_start_timeout(),
            email_domain=os.environ.get("EMAIL_DOMAIN") or None,
        )


def get_build_start_timeout() -> float:
    """Get the build start timeout from the environment, falling back to 60s."""
    raw = os.environ.get("JENKINS_BUILD_START_TIMEOUT", str(DEFAULT_BUILD_START_TIMEOUT))
    try:
        timeout = float(raw)
    except ValueError:
        logger.warning(
            f"Invalid JENKINS_BUILD_START_TIMEOUT={raw}, using default "
            f"{DEFAULT_BUILD_START_TIMEOUT}"
        )
        return DEFAULT_BUILD_START_TIMEOUT
    if timeout <= 0:
        logger.warning(
            f"Invalid JENKINS_BUILD_START_TIMEOUT={timeout}, using default "
            f"{DEFAULT_BUILD_START_TIMEOUT}"
        )
        return DEFAULT_BUILD_START_TIMEOUT
    return timeout
