"""
Data models for the deploy hook.

The deploy context is supplied by the deployment tool and is read-only here.
TriggeredJob records are created once per job name per deploy and never
updated afterwards.
"""

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

ERROR_COLUMN_LIMIT = 255
STARTUP_ERROR = "STARTUP_ERROR"


@dataclass(frozen=True)
class DeployUser:
    """A person taking part in a deploy (the deployer or the approving buddy)."""

    name: str
    email: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeployUser":
        return cls(name=data.get("name", ""), email=data.get("email"))


@dataclass(frozen=True)
class Stage:
    """
    Pipeline stage settings relevant to Jenkins.

    jenkins_job_names is the raw comma separated list configured on the
    stage. Job names may themselves contain spaces.
    """

    name: str
    jenkins_job_names: str | None = None
    jenkins_build_params: bool = False  # Manage DEPLOY_* parameters on the job
    jenkins_email_committers: bool = False  # Notify every commit author

    @property
    def job_names(self) -> list[str]:
        """Split the configured job name list on commas."""
        raw = (self.jenkins_job_names or "").strip()
        return [name for name in re.split(r"\s*,\s*", raw) if name]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Stage":
        return cls(
            name=data["name"],
            jenkins_job_names=data.get("jenkins_job_names"),
            jenkins_build_params=bool(data.get("jenkins_build_params", False)),
            jenkins_email_committers=bool(data.get("jenkins_email_committers", False)),
        )


@dataclass(frozen=True)
class Deploy:
    """
    Read-only view of a deploy handed over by the deployment tool.

    Only the fields needed to trigger and describe Jenkins builds are kept.
    """

    id: str
    status: str
    project_name: str
    stage: Stage
    reference: str
    user: DeployUser
    commit: str | None = None
    tag: str | None = None
    url: str | None = None
    buddy: DeployUser | None = None
    commit_author_emails: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Deploy":
        """Create a deploy from the JSON payload posted by the deployment tool."""
        buddy = data.get("buddy")
        return cls(
            id=str(data["id"]),
            status=data["status"],
            project_name=data["project"]["name"],
            stage=Stage.from_dict(data["stage"]),
            reference=data.get("reference", ""),
            user=DeployUser.from_dict(data["user"]),
            commit=data.get("commit"),
            tag=data.get("tag"),
            url=data.get("url"),
            buddy=DeployUser.from_dict(buddy) if buddy else None,
            commit_author_emails=tuple(
                c.get("author_email") for c in data.get("commits", [])
                if c.get("author_email")
            ),
        )


@dataclass
class TriggeredJob:
    """
    Represents one Jenkins build triggered for a deploy.

    Either jenkins_job_id is set (build started) or status is STARTUP_ERROR
    and error holds the truncated failure text.
    """

    id: str  # UUID
    name: str  # Jenkins job name
    deploy_id: str
    jenkins_job_id: int | None = None
    status: str | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def started(self) -> bool:
        return self.jenkins_job_id is not None

    @classmethod
    def from_outcome(
        cls, id: str, name: str, deploy_id: str, outcome: "int | str"
    ) -> "TriggeredJob":
        """
        Build a record from the value returned by BuildTrigger.build.

        Args:
            id: UUID for the new record
            name: Jenkins job name
            deploy_id: Owning deploy
            outcome: Numeric build id, or an error message

        Returns:
            TriggeredJob with either jenkins_job_id or status/error populated
        """
        if isinstance(outcome, int):
            return cls(id=id, name=name, deploy_id=deploy_id, jenkins_job_id=outcome)
        return cls(
            id=id,
            name=name,
            deploy_id=deploy_id,
            status=STARTUP_ERROR,
            error=str(outcome)[:ERROR_COLUMN_LIMIT],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert record to dictionary format (for API responses)."""
        return {
            "id": self.id,
            "name": self.name,
            "deploy_id": self.deploy_id,
            "jenkins_job_id": self.jenkins_job_id,
            "status": self.status,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ConfigChanges:
    """
    Differences between a job's config.xml and what the hook expects.

    missing_params keeps the order of the managed parameter table so that
    inserted parameter nodes come out in a stable order.
    """

    missing_params: tuple[str, ...] = ()
    description_stale: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(self.missing_params) or self.description_stale
