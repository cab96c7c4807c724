"""
Database repository for agent state.

Provides PostgreSQL operations for user credentials, the append-only email
log and the activity feed.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Generator, Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Json

from inbox_agent.config import settings
from inbox_agent.core.logging import get_logger
from inbox_agent.core.models import (
    Action,
    LogStatus,
    UserCredentials,
    EmailLogEntry,
    ActivityEntry,
    UserStats,
    current_status_by_message,
    processed_message_ids,
)

log = get_logger(__name__)

# Columns callers may set through upsert_credentials
CREDENTIAL_FIELDS = (
    "agent_active",
    "gmail_access_token",
    "gmail_refresh_token",
    "gmail_token_expiry",
    "classifier_api_key",
    "personal_description",
    "resume_link",
)


class Database:
    """PostgreSQL operations for the credential store and the log/activity sink."""

    def __init__(self, connection_string: str | None = None):
        """
        Initialize database connection.

        Args:
            connection_string: PostgreSQL connection URL. Uses settings if not provided.
        """
        self.connection_string = connection_string or settings.database_url

    @contextmanager
    def get_connection(self) -> Generator[psycopg.Connection, None, None]:
        """Get a database connection as a context manager."""
        conn = psycopg.connect(self.connection_string, row_factory=dict_row)
        try:
            yield conn
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Initialize database schema (create tables if not exist)."""
        schema_sql = """
        -- user_credentials: one row per user, connection tokens and agent settings
        CREATE TABLE IF NOT EXISTS user_credentials (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(255) UNIQUE NOT NULL,
            agent_active BOOLEAN DEFAULT FALSE,
            gmail_access_token TEXT,
            gmail_refresh_token TEXT,
            gmail_token_expiry TIMESTAMPTZ,
            classifier_api_key TEXT,
            personal_description TEXT,
            resume_link TEXT,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_credentials_active ON user_credentials(agent_active);

        -- email_logs: append-only processing outcomes
        CREATE TABLE IF NOT EXISTS email_logs (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(255) NOT NULL,
            email_id TEXT NOT NULL,
            from_email TEXT NOT NULL,
            subject TEXT,
            action VARCHAR(20) NOT NULL,
            response_text TEXT,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_email_logs_user ON email_logs(user_id, created_at DESC);
        CREATE INDEX IF NOT EXISTS idx_email_logs_message ON email_logs(user_id, email_id);

        -- activities: user-facing audit trail
        CREATE TABLE IF NOT EXISTS activities (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(255) NOT NULL,
            type VARCHAR(50) NOT NULL,
            description TEXT NOT NULL,
            metadata JSONB,
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_activities_user ON activities(user_id, created_at DESC);
        """

        with self.get_connection() as conn:
            conn.execute(schema_sql)
            conn.commit()
            log.info("database_schema_initialized")

    # ------------------------------------------------------------------
    # Credential store
    # ------------------------------------------------------------------

    def get_credentials(self, user_id: str) -> UserCredentials | None:
        """Fetch a user's credentials record, or None if the user has none."""
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM user_credentials WHERE user_id = %s",
                (user_id,)
            ).fetchone()
            return self._row_to_credentials(row) if row else None

    def upsert_credentials(self, user_id: str, **fields: Any) -> UserCredentials:
        """
        Insert or partially update a user's credentials record.

        Args:
            user_id: User the record belongs to
            **fields: Any of CREDENTIAL_FIELDS; omitted columns are left untouched

        Returns:
            The stored record
        """
        unknown = set(fields) - set(CREDENTIAL_FIELDS)
        if unknown:
            raise ValueError(f"Unknown credential fields: {sorted(unknown)}")

        columns = ["user_id", *fields]
        placeholders = ", ".join(f"%({c})s" for c in columns)
        updates = "".join(f"{c} = EXCLUDED.{c}, " for c in fields)
        sql = f"""
        INSERT INTO user_credentials ({", ".join(columns)})
        VALUES ({placeholders})
        ON CONFLICT (user_id) DO UPDATE
        SET {updates}updated_at = NOW()
        RETURNING *
        """

        with self.get_connection() as conn:
            row = conn.execute(sql, {"user_id": user_id, **fields}).fetchone()
            conn.commit()
            if not row:
                raise RuntimeError(f"Failed to upsert credentials for user: {user_id}")
            log.info("credentials_upserted", user_id=user_id, fields=sorted(fields))
            return self._row_to_credentials(row)

    def get_active_user_ids(self) -> list[str]:
        """User ids whose agent is switched on."""
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT user_id FROM user_credentials WHERE agent_active = TRUE ORDER BY user_id"
            ).fetchall()
            return [row["user_id"] for row in rows]

    # ------------------------------------------------------------------
    # Email log
    # ------------------------------------------------------------------

    def append_log(self, entry: EmailLogEntry) -> EmailLogEntry:
        """Append an email log row. Rows are never updated."""
        sql = """
        INSERT INTO email_logs (
            user_id, email_id, from_email, subject, action, response_text, status
        ) VALUES (
            %(user_id)s, %(email_id)s, %(from_email)s, %(subject)s, %(action)s,
            %(response_text)s, %(status)s
        )
        RETURNING *
        """

        with self.get_connection() as conn:
            row = conn.execute(sql, {
                "user_id": entry.user_id,
                "email_id": entry.message_id,
                "from_email": entry.from_email or "",
                "subject": entry.subject,
                "action": entry.action.value,
                "response_text": entry.response_text,
                "status": entry.status.value,
            }).fetchone()
            conn.commit()
            if not row:
                raise RuntimeError(f"Failed to insert email log: {entry.message_id}")
            log.debug(
                "email_log_appended",
                message_id=entry.message_id,
                action=entry.action.value,
                status=entry.status.value,
            )
            return self._row_to_log(row)

    def list_logs(self, user_id: str, limit: int | None = 50) -> list[EmailLogEntry]:
        """
        Fetch a user's email log, newest first.

        Args:
            user_id: User to fetch for
            limit: Maximum rows to return, or None for the full history
        """
        sql = "SELECT * FROM email_logs WHERE user_id = %s ORDER BY created_at DESC, id DESC"
        params: tuple = (user_id,)
        if limit is not None:
            sql += " LIMIT %s"
            params = (user_id, limit)

        with self.get_connection() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [self._row_to_log(row) for row in rows]

    def get_processed_message_ids(
        self,
        user_id: str,
        retry_pending_before: datetime | None = None,
    ) -> set[str]:
        """Message ids with log history that must not be processed again."""
        return processed_message_ids(
            self.list_logs(user_id, limit=None),
            retry_pending_before=retry_pending_before,
        )

    def get_current_statuses(self, user_id: str) -> dict[str, LogStatus]:
        """Current status per message, derived from the append-only log."""
        return current_status_by_message(self.list_logs(user_id, limit=None))

    def get_user_stats(self, user_id: str) -> UserStats:
        """Aggregate counters over the user's whole email log."""
        return UserStats.from_entries(self.list_logs(user_id, limit=None))

    # ------------------------------------------------------------------
    # Activity feed
    # ------------------------------------------------------------------

    def append_activity(self, entry: ActivityEntry) -> ActivityEntry:
        """Append an activity feed item."""
        sql = """
        INSERT INTO activities (user_id, type, description, metadata)
        VALUES (%(user_id)s, %(type)s, %(description)s, %(metadata)s)
        RETURNING *
        """

        with self.get_connection() as conn:
            row = conn.execute(sql, {
                "user_id": entry.user_id,
                "type": entry.type,
                "description": entry.description,
                "metadata": Json(entry.metadata),
            }).fetchone()
            conn.commit()
            if not row:
                raise RuntimeError(f"Failed to insert activity: {entry.type}")
            return self._row_to_activity(row)

    def list_activities(self, user_id: str, limit: int = 10) -> list[ActivityEntry]:
        """Fetch a user's most recent activity items."""
        with self.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM activities
                WHERE user_id = %s
                ORDER BY created_at DESC, id DESC
                LIMIT %s
                """,
                (user_id, limit)
            ).fetchall()
            return [self._row_to_activity(row) for row in rows]

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_credentials(row: dict[str, Any]) -> UserCredentials:
        return UserCredentials(
            user_id=row["user_id"],
            agent_active=bool(row["agent_active"]),
            gmail_access_token=row["gmail_access_token"],
            gmail_refresh_token=row["gmail_refresh_token"],
            gmail_token_expiry=row["gmail_token_expiry"],
            classifier_api_key=row["classifier_api_key"],
            personal_description=row["personal_description"],
            resume_link=row["resume_link"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_log(row: dict[str, Any]) -> EmailLogEntry:
        return EmailLogEntry(
            id=row["id"],
            user_id=row["user_id"],
            message_id=row["email_id"],
            from_email=row["from_email"] or "",
            subject=row["subject"],
            action=Action(row["action"]),
            response_text=row["response_text"],
            status=LogStatus(row["status"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_activity(row: dict[str, Any]) -> ActivityEntry:
        return ActivityEntry(
            id=row["id"],
            user_id=row["user_id"],
            type=row["type"],
            description=row["description"],
            metadata=row["metadata"] or {},
            created_at=row["created_at"],
        )
