"""
SQLite implementation of the triggered job repository.

Uses aiosqlite for async operations.
Can be easily replaced with PostgreSQL/MySQL implementations.
"""

from datetime import datetime

import aiosqlite

from hook_common.models import TriggeredJob
from hook_common.repository import TriggeredJobRepository

_COLUMNS = "id, name, deploy_id, jenkins_job_id, status, error, created_at"


class SQLiteTriggeredJobRepository(TriggeredJobRepository):
    """
    SQLite-based storage for triggered Jenkins jobs.

    Uses a single jenkins_jobs table, indexed by deploy_id.
    """

    def __init__(self, db_path: str = "hook_jobs.db"):
        """
        Initialize the SQLite repository.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = await aiosqlite.connect(self.db_path)
        return self._connection

    async def initialize(self) -> None:
        """
        Create database tables if they don't exist.

        Schema:
        - jenkins_jobs table: one row per job name triggered for a deploy.
          error is limited to 255 characters by the caller.
        """
        conn = await self._get_connection()

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS jenkins_jobs (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                deploy_id TEXT NOT NULL,
                jenkins_job_id INTEGER,
                status TEXT,
                error VARCHAR(255),
                created_at TEXT NOT NULL
            )
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_jenkins_jobs_deploy_id
            ON jenkins_jobs(deploy_id)
        """)

        await conn.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def create_triggered_job(self, job: TriggeredJob) -> None:
        """
        Insert a new record.

        Args:
            job: TriggeredJob to persist
        """
        conn = await self._get_connection()

        await conn.execute(
            f"INSERT INTO jenkins_jobs ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                job.id,
                job.name,
                job.deploy_id,
                job.jenkins_job_id,
                job.status,
                job.error,
                job.created_at.isoformat(),
            ),
        )
        await conn.commit()

    async def get_triggered_job(self, job_id: str) -> TriggeredJob | None:
        conn = await self._get_connection()

        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM jenkins_jobs WHERE id = ?", (job_id,)
        )
        row = await cursor.fetchone()

        if row is None:
            return None
        return self._row_to_job(row)

    async def list_deploy_jobs(self, deploy_id: str) -> list[TriggeredJob]:
        conn = await self._get_connection()

        # rowid keeps insertion order when created_at values collide
        cursor = await conn.execute(
            f"""
            SELECT {_COLUMNS}
            FROM jenkins_jobs
            WHERE deploy_id = ?
            ORDER BY created_at, rowid
            """,
            (deploy_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_job(row) for row in rows]

    async def list_triggered_jobs(self) -> list[TriggeredJob]:
        conn = await self._get_connection()

        cursor = await conn.execute(
            f"""
            SELECT {_COLUMNS}
            FROM jenkins_jobs
            ORDER BY created_at DESC, rowid DESC
            """
        )
        rows = await cursor.fetchall()
        return [self._row_to_job(row) for row in rows]

    @staticmethod
    def _row_to_job(row) -> TriggeredJob:
        (
            job_id,
            name,
            deploy_id,
            jenkins_job_id,
            status,
            error,
            created_at_str,
        ) = row
        return TriggeredJob(
            id=job_id,
            name=name,
            deploy_id=deploy_id,
            jenkins_job_id=jenkins_job_id,
            status=status,
            error=error,
            created_at=datetime.fromisoformat(created_at_str),
        )
