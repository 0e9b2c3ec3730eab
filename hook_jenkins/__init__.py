"""
Deploy Hook Jenkins module.

Talks to the Jenkins API, keeps job configs in line with the parameters the
hook sends, triggers builds after successful deploys and reports their status.
"""

from .client import BuildStartTimeout, JenkinsApiError, JenkinsClient, JenkinsNotFound
from .reconciler import ConfigReconciler, JobConfig, JobConfigError, parse_config
from .settings import JenkinsSettings
from .trigger import BuildTrigger, JobStatusReporter, on_deploy_succeeded

__all__ = [
    "BuildStartTimeout",
    "BuildTrigger",
    "ConfigReconciler",
    "JenkinsApiError",
    "JenkinsClient",
    "JenkinsNotFound",
    "JenkinsSettings",
    "JobConfig",
    "JobConfigError",
    "JobStatusReporter",
    "on_deploy_succeeded",
    "parse_config",
]
