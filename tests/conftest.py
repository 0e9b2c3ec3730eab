"""Shared fixtures for deploy hook tests."""

import pytest

from hook_common.models import Deploy, TriggeredJob
from hook_common.repository import TriggeredJobRepository

BARE_CONFIG = """<?xml version='1.1' encoding='UTF-8'?>
<project>
  <actions/>
  <description>Runs the smoke tests.</description>
  <keepDependencies>false</keepDependencies>
  <properties/>
  <scm class="hudson.scm.NullSCM"/>
  <builders/>
</project>
"""


def deploy_payload(**overrides):
    """JSON payload of a succeeded deploy, as posted by the deployment tool."""
    payload = {
        "id": "101",
        "status": "succeeded",
        "project": {"name": "Shop"},
        "stage": {
            "name": "production",
            "jenkins_job_names": "smoke-tests",
            "jenkins_build_params": False,
            "jenkins_email_committers": False,
        },
        "reference": "v1.2.3",
        "commit": "abc123",
        "tag": "v1.2.3",
        "url": "https://deploy.example.com/projects/shop/deploys/101",
        "user": {"name": "Alice", "email": "alice@example.com"},
        "buddy": None,
        "commits": [],
    }
    stage_overrides = overrides.pop("stage", {})
    payload.update(overrides)
    payload["stage"] = {**payload["stage"], **stage_overrides}
    return payload


@pytest.fixture
def make_deploy():
    """Factory for Deploy objects with overridable payload fields."""

    def factory(**overrides) -> Deploy:
        return Deploy.from_dict(deploy_payload(**overrides))

    return factory


class InMemoryRepository(TriggeredJobRepository):
    """Dictionary-backed repository for tests that don't need SQLite."""

    def __init__(self):
        self.jobs: dict[str, TriggeredJob] = {}

    async def create_triggered_job(self, job: TriggeredJob) -> None:
        if job.id in self.jobs:
            raise ValueError(f"Duplicate job {job.id}")
        self.jobs[job.id] = job

    async def get_triggered_job(self, job_id: str) -> TriggeredJob | None:
        return self.jobs.get(job_id)

    async def list_deploy_jobs(self, deploy_id: str) -> list[TriggeredJob]:
        return [j for j in self.jobs.values() if j.deploy_id == deploy_id]

    async def list_triggered_jobs(self) -> list[TriggeredJob]:
        return list(reversed(self.jobs.values()))

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass


@pytest.fixture
def memory_repository():
    return InMemoryRepository()
