from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

from personal_youtube.repositories.database import Database

StreamKind = Literal["uploads", "search"]

ACCESS_TOKEN_KEY = "access_token"
SESSION_KEY_KEY = "sesskey"


@dataclass(frozen=True)
class CachedSearch:
    keyword: str
    sort: str


class SessionTokenRepository:
    """Session-scoped key/value state: the access token, per-stream page tokens and search cache.

    Values are addressed by (session id, key); stream keys embed the repository instance id so
    two repository instances used from the same session never share a cursor.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def get_access_token(self, session_id: str) -> str | None:
        value = self._get(session_id, ACCESS_TOKEN_KEY)
        return value if value else None

    def store_access_token(self, session_id: str, token: str | None) -> None:
        if token is None:
            self._delete(session_id, ACCESS_TOKEN_KEY)
            return
        self._set(session_id, ACCESS_TOKEN_KEY, token)

    def get_session_key(self, session_id: str) -> str | None:
        return self._get(session_id, SESSION_KEY_KEY)

    def store_session_key(self, session_id: str, session_key: str) -> None:
        self._set(session_id, SESSION_KEY_KEY, session_key)

    def get_page_token(self, session_id: str, repository_id: str, stream: StreamKind) -> str | None:
        return self._get(session_id, _stream_key(repository_id, stream, "next_page_token"))

    def store_page_token(
        self,
        session_id: str,
        repository_id: str,
        stream: StreamKind,
        page_token: str,
    ) -> None:
        self._set(session_id, _stream_key(repository_id, stream, "next_page_token"), page_token)

    def get_cached_search(self, session_id: str, repository_id: str) -> CachedSearch | None:
        keyword = self._get(session_id, _stream_key(repository_id, "search", "keyword"))
        sort = self._get(session_id, _stream_key(repository_id, "search", "sort"))
        if keyword is None and sort is None:
            return None
        return CachedSearch(keyword=keyword or "", sort=sort or "")

    def store_cached_search(
        self,
        session_id: str,
        repository_id: str,
        *,
        keyword: str,
        sort: str,
    ) -> None:
        now_iso = datetime.now(UTC).isoformat()
        with self._db.connection() as conn:
            conn.executemany(
                """
                INSERT INTO session_state (session_id, state_key, value_text, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(session_id, state_key) DO UPDATE SET
                    value_text = excluded.value_text,
                    updated_at = excluded.updated_at
                """,
                [
                    (session_id, _stream_key(repository_id, "search", "keyword"), keyword, now_iso),
                    (session_id, _stream_key(repository_id, "search", "sort"), sort, now_iso),
                ],
            )

    def clear_session(self, session_id: str) -> int:
        with self._db.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM session_state WHERE session_id = ?",
                (session_id,),
            )
            cleared = cursor.rowcount
        return cleared

    def _get(self, session_id: str, state_key: str) -> str | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT value_text
                FROM session_state
                WHERE session_id = ? AND state_key = ?
                """,
                (session_id, state_key),
            ).fetchone()

        if row is None:
            return None
        return str(row["value_text"])

    def _set(self, session_id: str, state_key: str, value: str) -> None:
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO session_state (session_id, state_key, value_text, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(session_id, state_key) DO UPDATE SET
                    value_text = excluded.value_text,
                    updated_at = excluded.updated_at
                """,
                (session_id, state_key, value, datetime.now(UTC).isoformat()),
            )

    def _delete(self, session_id: str, state_key: str) -> None:
        with self._db.connection() as conn:
            conn.execute(
                "DELETE FROM session_state WHERE session_id = ? AND state_key = ?",
                (session_id, state_key),
            )


def _stream_key(repository_id: str, stream: StreamKind, field: str) -> str:
    return f"repository:{repository_id}:{stream}:{field}"
