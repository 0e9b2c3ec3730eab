"""
Admin CLI for the deploy hook.

Provides commands to inspect triggered Jenkins jobs and to check or update
a Jenkins job's managed configuration by hand.
"""

import asyncio
import json
import os
import sys

import click

from hook_jenkins.client import JenkinsApiError, JenkinsClient
from hook_jenkins.reconciler import ConfigReconciler, JobConfigError, parse_config
from hook_jenkins.settings import JenkinsSettings
from hook_jenkins.trigger import NOT_FOUND_URL, JobStatusReporter
from hook_persistence.sqlite_repository import SQLiteTriggeredJobRepository


def get_db_path() -> str:
    """Get the database path from environment variable or default."""
    return os.environ.get("HOOK_DB_PATH", "hook_jobs.db")


def get_repository() -> SQLiteTriggeredJobRepository:
    """Get the repository instance."""
    return SQLiteTriggeredJobRepository(get_db_path())


def get_jenkins_client() -> JenkinsClient:
    """Build a Jenkins client from the environment, exiting on missing settings."""
    try:
        settings = JenkinsSettings.from_env()
    except RuntimeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    return JenkinsClient(settings.url, settings.username, settings.api_key)


def run_async(coro):
    """Helper to run async functions in CLI commands."""
    return asyncio.run(coro)


@click.group()
def cli():
    """Deploy Hook Admin - Inspect triggered Jenkins jobs and job configs."""
    pass


@cli.group()
def jobs():
    """Inspect triggered Jenkins jobs."""
    pass


@cli.group()
def config():
    """Check Jenkins job configurations."""
    pass


# ============================================================================
# Job Commands
# ============================================================================


@jobs.command("list")
@click.option("--deploy-id", default=None, help="Only show jobs of this deploy")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def jobs_list(deploy_id: str | None, json_output: bool):
    """List triggered Jenkins jobs."""

    async def list_jobs():
        repo = get_repository()
        await repo.initialize()

        try:
            if deploy_id:
                records = await repo.list_deploy_jobs(deploy_id)
            else:
                records = await repo.list_triggered_jobs()

            if json_output:
                click.echo(json.dumps([r.to_dict() for r in records], indent=2))
                return

            if not records:
                click.echo("No Jenkins jobs found.")
                return

            click.echo(f"\n{'ID':<38} {'Job':<30} {'Deploy':<12} {'Build / Status':<20}")
            click.echo("-" * 100)
            for r in records:
                outcome = f"#{r.jenkins_job_id}" if r.started else (r.status or "-")
                click.echo(f"{r.id:<38} {r.name:<30} {r.deploy_id:<12} {outcome:<20}")
            click.echo()

        finally:
            await repo.close()

    run_async(list_jobs())


@jobs.command("status")
@click.argument("record_id")
def jobs_status(record_id: str):
    """Show the current Jenkins result of a triggered job."""

    async def load():
        repo = get_repository()
        await repo.initialize()
        try:
            return await repo.get_triggered_job(record_id)
        finally:
            await repo.close()

    record = run_async(load())
    if record is None:
        click.echo(f"Error: Jenkins job {record_id} not found", err=True)
        sys.exit(1)

    click.echo(f"Job:    {record.name}")
    click.echo(f"Deploy: {record.deploy_id}")

    if not record.started:
        click.echo(f"Status: {record.status}")
        click.echo(f"Error:  {record.error}")
        click.echo(f"URL:    {NOT_FOUND_URL}")
        return

    reporter = JobStatusReporter(record.name, get_jenkins_client())
    try:
        result = reporter.status(record.jenkins_job_id)
        url = reporter.url(record.jenkins_job_id)
    except JenkinsApiError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Build:  #{record.jenkins_job_id}")
    click.echo(f"Result: {result or 'RUNNING'}")
    click.echo(f"URL:    {url}")


# ============================================================================
# Config Commands
# ============================================================================


@config.command("check")
@click.argument("job_name")
@click.option("--project", required=True, help="Project name of the deploying pipeline")
@click.option("--stage", required=True, help="Stage name of the deploying pipeline")
@click.option("--apply", "apply_changes", is_flag=True, help="Post the updated config")
def config_check(job_name: str, project: str, stage: str, apply_changes: bool):
    """Check whether JOB_NAME declares the managed parameters and description."""
    client = get_jenkins_client()
    reconciler = ConfigReconciler(project, stage)

    try:
        job_config = parse_config(client.get_config(job_name))
    except (JenkinsApiError, JobConfigError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    changes = reconciler.check_config(job_config)
    if not changes.has_changes:
        click.echo(f"✓ {job_name} is up to date")
        return

    if changes.missing_params:
        click.echo(f"Missing parameters: {', '.join(changes.missing_params)}")
    if changes.description_stale:
        click.echo(f"Description does not list: {reconciler.job_line}")

    if not apply_changes:
        click.echo("Run again with --apply to update the job.")
        sys.exit(2)

    try:
        client.post_config(job_name, reconciler.apply(job_config, changes).to_xml())
    except JenkinsApiError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ Updated config of {job_name}")


if __name__ == "__main__":
    cli()
