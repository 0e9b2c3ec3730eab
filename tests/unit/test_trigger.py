"""
Unit tests for BuildTrigger, JobStatusReporter and on_deploy_succeeded.

The Jenkins client is mocked; the cache is a real MemoryCache so cache
invalidation after posting a config is exercised.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from hook_common.cache import MemoryCache
from hook_common.models import ERROR_COLUMN_LIMIT, STARTUP_ERROR
from hook_jenkins.client import (
    BuildStartTimeout,
    JenkinsApiError,
    JenkinsClient,
    JenkinsNotFound,
)
from hook_jenkins.reconciler import ConfigReconciler, JobConfigError, parse_config
from hook_jenkins.trigger import (
    BuildTrigger,
    JobStatusReporter,
    on_deploy_succeeded,
)
from tests.conftest import BARE_CONFIG


@pytest.fixture
def client():
    client = Mock(spec=JenkinsClient)
    client.build.return_value = 42
    client.get_config.return_value = BARE_CONFIG
    return client


@pytest.fixture
def cache():
    return MemoryCache()


def compliant_config() -> str:
    reconciler = ConfigReconciler("Shop", "production")
    config = parse_config(BARE_CONFIG)
    return reconciler.apply(config, reconciler.check_config(config)).to_xml()


class TestBuildTrigger:
    """Test suite for BuildTrigger.build."""

    def test_build_params(self, make_deploy, client, cache):
        deploy = make_deploy(
            buddy={"name": "Bob", "email": "bob@example.com"},
        )
        trigger = BuildTrigger("smoke-tests", deploy, client, cache)

        assert trigger.build_params() == {
            "buildStartedBy": "Alice",
            "originatedFrom": "Shop_production_v1.2.3",
            "commit": "abc123",
            "tag": "v1.2.3",
            "deployUrl": "https://deploy.example.com/projects/shop/deploys/101",
            "emails": "alice@example.com,bob@example.com",
        }

    def test_plain_parameters_without_management(self, make_deploy, client, cache):
        trigger = BuildTrigger("smoke-tests", make_deploy(), client, cache)

        assert trigger.build() == 42

        client.get_config.assert_not_called()
        client.post_config.assert_not_called()
        args, kwargs = client.build.call_args
        assert args[0] == "smoke-tests"
        assert set(args[1]) == {
            "buildStartedBy", "originatedFrom", "commit", "tag", "deployUrl", "emails"
        }
        assert kwargs == {"build_start_timeout": 60}

    def test_unconfigured_job_gets_config_posted(self, make_deploy, client, cache):
        deploy = make_deploy(stage={"jenkins_build_params": True})
        trigger = BuildTrigger("smoke-tests", deploy, client, cache)

        assert trigger.build() == 42

        client.post_config.assert_called_once()
        job_name, posted_xml = client.post_config.call_args.args
        assert job_name == "smoke-tests"
        reconciler = ConfigReconciler("Shop", "production")
        assert not reconciler.check_config(parse_config(posted_xml)).has_changes

        # Fetched once for the check and once fresh before rewriting
        assert client.get_config.call_count == 2

        params = client.build.call_args.args[1]
        assert all(key.startswith("DEPLOY_") for key in params)
        assert params["DEPLOY_commit"] == "abc123"

    def test_cache_invalidated_after_post(self, make_deploy, client, cache):
        deploy = make_deploy(stage={"jenkins_build_params": True})
        trigger = BuildTrigger("smoke-tests", deploy, client, cache)
        trigger.build()

        client.get_config.return_value = compliant_config()
        trigger.job_config()

        assert client.get_config.call_count == 3

    def test_compliant_job_is_not_posted(self, make_deploy, client, cache):
        client.get_config.return_value = compliant_config()
        deploy = make_deploy(stage={"jenkins_build_params": True})

        assert BuildTrigger("smoke-tests", deploy, client, cache).build() == 42
        # Second deploy is served from the cache
        assert BuildTrigger("smoke-tests", deploy, client, cache).build() == 42

        client.post_config.assert_not_called()
        assert client.get_config.call_count == 1

    def test_timeout_becomes_message(self, make_deploy, client, cache):
        client.build.side_effect = BuildStartTimeout("no executor")
        trigger = BuildTrigger("smoke-tests", make_deploy(), client, cache)

        outcome = trigger.build()

        assert isinstance(outcome, str)
        assert "failed to start in a timely manner" in outcome
        assert "smoke-tests" in outcome
        assert "BuildStartTimeout no executor" in outcome

    def test_timeout_after_reconciliation(self, make_deploy, client, cache):
        client.build.side_effect = BuildStartTimeout("no executor")
        deploy = make_deploy(stage={"jenkins_build_params": True})

        outcome = BuildTrigger("smoke-tests", deploy, client, cache).build()

        client.post_config.assert_called_once()
        assert "failed to start in a timely manner" in outcome

    def test_api_error_becomes_message(self, make_deploy, client, cache):
        client.build.side_effect = JenkinsApiError("HTTP 500")
        trigger = BuildTrigger("smoke-tests", make_deploy(), client, cache)

        outcome = trigger.build()

        assert outcome.startswith("Problem while waiting for 'smoke-tests' to start.")
        assert "JenkinsApiError HTTP 500" in outcome

    def test_config_fetch_failure_becomes_message(self, make_deploy, client, cache):
        client.get_config.side_effect = JenkinsNotFound("Requested component is not found")
        deploy = make_deploy(stage={"jenkins_build_params": True})

        outcome = BuildTrigger("missing-job", deploy, client, cache).build()

        assert outcome.startswith("Problem while waiting for 'missing-job' to start.")
        assert "JenkinsNotFound Requested component is not found" in outcome
        client.build.assert_not_called()

    def test_config_post_failure_becomes_message(self, make_deploy, client, cache):
        client.post_config.side_effect = JenkinsApiError("HTTP 403")
        deploy = make_deploy(stage={"jenkins_build_params": True})

        outcome = BuildTrigger("smoke-tests", deploy, client, cache).build()

        assert "JenkinsApiError HTTP 403" in outcome
        client.build.assert_not_called()

    def test_unparsable_config_propagates(self, make_deploy, client, cache):
        client.get_config.return_value = "<project>"
        deploy = make_deploy(stage={"jenkins_build_params": True})

        with pytest.raises(JobConfigError):
            BuildTrigger("smoke-tests", deploy, client, cache).build()


class TestJobStatusReporter:
    """Test suite for JobStatusReporter."""

    def test_status_and_url_share_one_request(self, client):
        client.get_build_details.return_value = {
            "result": "SUCCESS",
            "url": "http://jenkins.local/job/smoke-tests/42/",
        }
        reporter = JobStatusReporter("smoke-tests", client)

        assert reporter.status(42) == "SUCCESS"
        assert reporter.url(42) == "http://jenkins.local/job/smoke-tests/42/"
        client.get_build_details.assert_called_once_with("smoke-tests", 42)

    def test_each_build_fetched_separately(self, client):
        client.get_build_details.side_effect = [
            {"result": "SUCCESS", "url": "u1"},
            {"result": "FAILURE", "url": "u2"},
        ]
        reporter = JobStatusReporter("smoke-tests", client)

        assert reporter.status(1) == "SUCCESS"
        assert reporter.status(2) == "FAILURE"

    def test_running_build_has_no_result(self, client):
        client.get_build_details.return_value = {"result": None, "url": "u"}

        assert JobStatusReporter("smoke-tests", client).status(5) is None

    def test_not_found_is_not_an_error(self, client):
        error = JenkinsNotFound("Requested component is not found")
        client.get_build_details.side_effect = error
        reporter = JobStatusReporter("smoke-tests", client)

        assert reporter.status(999) == str(error)
        assert reporter.url(999) == "#"
        client.get_build_details.assert_called_once()


class TestOnDeploySucceeded:
    """Test suite for on_deploy_succeeded."""

    @pytest.fixture
    def repository(self):
        repo = AsyncMock()
        repo.create_triggered_job = AsyncMock()
        return repo

    async def test_ignores_unsuccessful_deploys(self, make_deploy, client, cache, repository):
        deploy = make_deploy(status="failed")

        records = await on_deploy_succeeded(deploy, client, cache, repository)

        assert records == []
        client.build.assert_not_called()
        repository.create_triggered_job.assert_not_called()

    async def test_no_job_names(self, make_deploy, client, cache, repository):
        deploy = make_deploy(stage={"jenkins_job_names": "  "})

        assert await on_deploy_succeeded(deploy, client, cache, repository) == []

    async def test_records_each_job(self, make_deploy, client, cache, repository):
        client.build.side_effect = [BuildStartTimeout("x" * 400), 7]
        deploy = make_deploy(stage={"jenkins_job_names": "smoke-tests, integration"})

        records = await on_deploy_succeeded(deploy, client, cache, repository)

        assert [r.name for r in records] == ["smoke-tests", "integration"]
        failed, started = records

        assert failed.jenkins_job_id is None
        assert failed.status == STARTUP_ERROR
        assert len(failed.error) == ERROR_COLUMN_LIMIT
        assert "failed to start in a timely manner" in failed.error

        assert started.jenkins_job_id == 7
        assert started.status is None
        assert started.error is None

        assert all(r.deploy_id == "101" for r in records)
        assert repository.create_triggered_job.await_count == 2

    async def test_persists_to_repository(self, make_deploy, client, cache, memory_repository):
        deploy = make_deploy(stage={"jenkins_job_names": "Smoke Tests, integration"})

        records = await on_deploy_succeeded(
            deploy, client, cache, memory_repository, build_start_timeout=5
        )

        stored = await memory_repository.list_deploy_jobs("101")
        assert [r.name for r in stored] == ["Smoke Tests", "integration"]
        assert [r.id for r in stored] == [r.id for r in records]
        assert client.build.call_args.kwargs == {"build_start_timeout": 5}

    async def test_unknown_job_does_not_stop_siblings(
        self, make_deploy, client, cache, memory_repository
    ):
        def get_config(job_name):
            if job_name == "missing-job":
                raise JenkinsNotFound("Requested component is not found")
            return BARE_CONFIG

        client.get_config.side_effect = get_config
        deploy = make_deploy(
            stage={"jenkins_job_names": "missing-job, smoke-tests", "jenkins_build_params": True}
        )

        records = await on_deploy_succeeded(deploy, client, cache, memory_repository)

        missing, started = records
        assert missing.status == STARTUP_ERROR
        assert "JenkinsNotFound" in missing.error
        assert started.jenkins_job_id == 42
        client.build.assert_called_once()
        assert client.build.call_args.args[0] == "smoke-tests"
        assert len(await memory_repository.list_deploy_jobs("101")) == 2
