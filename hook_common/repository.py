"""
Abstract repository interface for triggered job persistence.

This module defines the contract that any database implementation must follow,
allowing easy swapping between SQLite, PostgreSQL, MySQL, etc.
"""

from abc import ABC, abstractmethod

from .models import TriggeredJob


class TriggeredJobRepository(ABC):
    """
    Abstract base class for triggered job storage operations.

    Records are append-only: there is deliberately no update method.
    """

    @abstractmethod
    async def create_triggered_job(self, job: TriggeredJob) -> None:
        """
        Persist a new triggered job record.

        Args:
            job: TriggeredJob to persist

        Raises:
            Exception: If a record with the same ID already exists
        """
        pass

    @abstractmethod
    async def get_triggered_job(self, job_id: str) -> TriggeredJob | None:
        """
        Retrieve a triggered job record by its ID.

        Args:
            job_id: UUID of the record

        Returns:
            TriggeredJob if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_deploy_jobs(self, deploy_id: str) -> list[TriggeredJob]:
        """
        List the records created for one deploy, oldest first.

        Args:
            deploy_id: ID of the owning deploy
        """
        pass

    @abstractmethod
    async def list_triggered_jobs(self) -> list[TriggeredJob]:
        """List all records, newest first."""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """
        Initialize the database (create tables, etc.).

        Called once at application startup.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Close database connections and cleanup resources.

        Called at application shutdown.
        """
        pass
