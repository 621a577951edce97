"""
SQLite Repository - Catalog storage with substring, FTS5 and vector search.

Features:
- Async operations via aiosqlite
- Substring search with prefix-first ordering (tags, users, lists, tools)
- FTS5 + trigram ranked search (submissions)
- Exact cosine nearest-neighbor search over float32 embedding blobs
"""

from __future__ import annotations

import logging
import re
import sqlite3
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import numpy as np

from toolfinder.config import StorageError, ValidationError
from toolfinder.domains.catalog import (
    Submission,
    SubmissionScope,
    SubmissionStatus,
    SubmissionType,
    Tag,
    TagType,
    Tool,
    ToolList,
    ToolScope,
    User,
    UserStatus,
    Visibility,
)

from .trigram import trigram_similarity

logger = logging.getLogger(__name__)

__all__ = ["CatalogRepository", "EMBEDDED_KINDS", "fts_query", "like_pattern"]

EMBEDDED_KINDS = ("tools", "submissions")

TRIGRAM_THRESHOLD = 0.3

# bm25 column weights: name, description, author note
FTS_WEIGHTS = (1.0, 0.4, 0.2)

_TOKEN = re.compile(r"\w+")


def like_pattern(query: str, prefix: bool = False) -> str:
    """LIKE pattern matching ``query`` literally (``%``, ``_`` and ``\\`` escaped)."""
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}%" if prefix else f"%{escaped}%"


def fts_query(query: str) -> str:
    """FTS5 expression: every word as a quoted prefix term, implicitly ANDed."""
    return " ".join(f'"{token}"*' for token in _TOKEN.findall(query))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _timestamp(value: datetime | None) -> str:
    if value is None:
        return _now()
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class CatalogRepository:
    """
    SQLite repository for the searchable catalog.

    Example:
        >>> repo = CatalogRepository("data/toolfinder.db")
        >>> await repo.initialize()
        >>> user_id = await repo.add_user("ada")
        >>> await repo.add_tool(user_id, "React", tags=["javascript"])
        >>> rows = await repo.keyword_tools("react", ToolScope(), limit=20)
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection: aiosqlite.Connection | None = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            try:
                self._connection = await aiosqlite.connect(str(self.db_path))
            except sqlite3.Error as e:
                raise StorageError(f"Cannot open database: {e}", {"path": str(self.db_path)}) from e
            self._connection.row_factory = aiosqlite.Row
            await self._connection.create_function(
                "trigram_similarity", 2, trigram_similarity, deterministic=True
            )
            await self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    async def initialize(self) -> None:
        """Initialize database schema."""
        conn = await self._get_connection()

        await conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                user_bio TEXT,
                user_status TEXT NOT NULL DEFAULT 'active',
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tags (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tag_name TEXT NOT NULL UNIQUE,
                tag_description TEXT,
                tag_type TEXT NOT NULL DEFAULT 'category',
                parent_id INTEGER REFERENCES tags(id),
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tools (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id),
                tool_name TEXT NOT NULL,
                tool_description TEXT,
                tool_url TEXT,
                author_note TEXT,
                visibility TEXT NOT NULL DEFAULT 'public',
                embedding BLOB,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tool_tags (
                tool_id INTEGER NOT NULL REFERENCES tools(id) ON DELETE CASCADE,
                tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
                PRIMARY KEY (tool_id, tag_id)
            );

            CREATE TABLE IF NOT EXISTS submissions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id),
                submission_type TEXT NOT NULL DEFAULT 'article',
                status TEXT NOT NULL DEFAULT 'pending',
                submission_url TEXT,
                submission_name TEXT,
                submission_description TEXT,
                author_note TEXT,
                embedding BLOB,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS submission_tags (
                submission_id INTEGER NOT NULL REFERENCES submissions(id) ON DELETE CASCADE,
                tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
                PRIMARY KEY (submission_id, tag_id)
            );

            CREATE TABLE IF NOT EXISTS submission_tools (
                submission_id INTEGER NOT NULL REFERENCES submissions(id) ON DELETE CASCADE,
                tool_id INTEGER NOT NULL REFERENCES tools(id) ON DELETE CASCADE,
                PRIMARY KEY (submission_id, tool_id)
            );

            CREATE TABLE IF NOT EXISTS lists (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id),
                list_name TEXT NOT NULL,
                visibility TEXT NOT NULL DEFAULT 'private',
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS list_tools (
                list_id INTEGER NOT NULL REFERENCES lists(id) ON DELETE CASCADE,
                tool_id INTEGER NOT NULL REFERENCES tools(id) ON DELETE CASCADE,
                PRIMARY KEY (list_id, tool_id)
            );

            -- FTS5 virtual table for submission full-text search
            CREATE VIRTUAL TABLE IF NOT EXISTS submissions_fts USING fts5(
                submission_name,
                submission_description,
                author_note,
                content='submissions',
                content_rowid='id',
                tokenize='porter'
            );

            -- Triggers to keep FTS in sync
            CREATE TRIGGER IF NOT EXISTS submissions_ai AFTER INSERT ON submissions BEGIN
                INSERT INTO submissions_fts(rowid, submission_name, submission_description, author_note)
                VALUES (new.id, new.submission_name, new.submission_description, new.author_note);
            END;

            CREATE TRIGGER IF NOT EXISTS submissions_ad AFTER DELETE ON submissions BEGIN
                INSERT INTO submissions_fts(submissions_fts, rowid, submission_name, submission_description, author_note)
                VALUES ('delete', old.id, old.submission_name, old.submission_description, old.author_note);
            END;

            CREATE TRIGGER IF NOT EXISTS submissions_au
            AFTER UPDATE OF submission_name, submission_description, author_note ON submissions BEGIN
                INSERT INTO submissions_fts(submissions_fts, rowid, submission_name, submission_description, author_note)
                VALUES ('delete', old.id, old.submission_name, old.submission_description, old.author_note);
                INSERT INTO submissions_fts(rowid, submission_name, submission_description, author_note)
                VALUES (new.id, new.submission_name, new.submission_description, new.author_note);
            END;

            -- Indexes
            CREATE INDEX IF NOT EXISTS idx_tools_visibility ON tools(visibility);
            CREATE INDEX IF NOT EXISTS idx_submissions_status ON submissions(status, submission_type);
            CREATE INDEX IF NOT EXISTS idx_lists_visibility ON lists(visibility);
            CREATE INDEX IF NOT EXISTS idx_users_status ON users(user_status);
        """)

        await conn.commit()
        logger.info("Database initialized: %s", self.db_path)

    # --- Lexical queries ---

    async def keyword_tools(
        self,
        query: str,
        scope: ToolScope,
        limit: int,
    ) -> list[tuple[Tool, float]]:
        """
        Substring match on tool name, description or tag name.

        Every match has relevance 1.0; order is prefix-first, newest, id.
        """
        conn = await self._get_connection()
        pattern, prefix = like_pattern(query), like_pattern(query, prefix=True)

        cursor = await conn.execute(
            r"""
            SELECT t.*
            FROM tools t
            WHERE t.visibility = ?
              AND (
                t.tool_name LIKE ? ESCAPE '\'
                OR t.tool_description LIKE ? ESCAPE '\'
                OR t.id IN (
                    SELECT tt.tool_id FROM tool_tags tt
                    JOIN tags g ON g.id = tt.tag_id
                    WHERE g.tag_name LIKE ? ESCAPE '\'
                )
              )
            ORDER BY CASE WHEN t.tool_name LIKE ? ESCAPE '\' THEN 0 ELSE 1 END,
                     t.created_at DESC, t.id
            LIMIT ?
            """,
            (scope.visibility.value, pattern, pattern, pattern, prefix, limit),
        )
        tools = await self._hydrate_tools(await cursor.fetchall())
        return [(tool, 1.0) for tool in tools]

    async def fulltext_submissions(
        self,
        query: str,
        scope: SubmissionScope,
        limit: int,
    ) -> list[tuple[Submission, float]]:
        """
        Full-text prefix match plus trigram fuzzy match on the name.

        Relevance is ``-bm25 + trigram_similarity(name, query)``; a row
        matches if FTS matches or the name trigram similarity is at least 0.3.
        """
        conn = await self._get_connection()
        expression = fts_query(query)

        if expression:
            fts_source = (
                "SELECT rowid AS id, bm25(submissions_fts, ?, ?, ?) AS bm25 "
                "FROM submissions_fts WHERE submissions_fts MATCH ?"
            )
            params: list[Any] = [*FTS_WEIGHTS, expression]
        else:
            fts_source = "SELECT NULL AS id, NULL AS bm25 WHERE 0"
            params = []

        filters = ["s.status = ?"]
        params += [query, scope.status.value]
        if scope.submission_type is not None:
            filters.append("s.submission_type = ?")
            params.append(scope.submission_type.value)
        params += [query, TRIGRAM_THRESHOLD, limit]

        cursor = await conn.execute(
            f"""
            WITH fts AS MATERIALIZED ({fts_source})
            SELECT s.*,
                   COALESCE(-fts.bm25, 0.0)
                     + trigram_similarity(s.submission_name, ?) AS relevance
            FROM submissions s
            LEFT JOIN fts ON fts.id = s.id
            WHERE {" AND ".join(filters)}
              AND (fts.id IS NOT NULL OR trigram_similarity(s.submission_name, ?) >= ?)
            ORDER BY relevance DESC, s.id
            LIMIT ?
            """,
            params,
        )
        rows = await cursor.fetchall()
        submissions = await self._hydrate_submissions(rows)
        return [(s, float(row["relevance"])) for s, row in zip(submissions, rows)]

    async def search_tags(
        self,
        query: str,
        limit: int,
        offset: int,
    ) -> tuple[list[Tag], int]:
        """Tags whose name contains the query."""
        conn = await self._get_connection()
        pattern, prefix = like_pattern(query), like_pattern(query, prefix=True)

        total = await self._count(
            r"SELECT COUNT(*) FROM tags WHERE tag_name LIKE ? ESCAPE '\'", (pattern,)
        )
        cursor = await conn.execute(
            r"""
            SELECT * FROM tags
            WHERE tag_name LIKE ? ESCAPE '\'
            ORDER BY CASE WHEN tag_name LIKE ? ESCAPE '\' THEN 0 ELSE 1 END,
                     created_at DESC, id
            LIMIT ? OFFSET ?
            """,
            (pattern, prefix, limit, offset),
        )
        return [self._tag(row) for row in await cursor.fetchall()], total

    async def search_users(
        self,
        query: str,
        limit: int,
        offset: int,
    ) -> tuple[list[User], int]:
        """Active users whose username or bio contains the query."""
        conn = await self._get_connection()
        pattern, prefix = like_pattern(query), like_pattern(query, prefix=True)
        where = (
            r"user_status = ? AND (username LIKE ? ESCAPE '\' OR user_bio LIKE ? ESCAPE '\')"
        )
        where_params = (UserStatus.ACTIVE.value, pattern, pattern)

        total = await self._count(f"SELECT COUNT(*) FROM users WHERE {where}", where_params)
        cursor = await conn.execute(
            rf"""
            SELECT * FROM users
            WHERE {where}
            ORDER BY CASE WHEN username LIKE ? ESCAPE '\' THEN 0 ELSE 1 END,
                     created_at DESC, id
            LIMIT ? OFFSET ?
            """,
            (*where_params, prefix, limit, offset),
        )
        return [self._user(row) for row in await cursor.fetchall()], total

    async def search_lists(
        self,
        query: str,
        limit: int,
        offset: int,
    ) -> tuple[list[ToolList], int]:
        """Public lists whose name or owner username contains the query."""
        conn = await self._get_connection()
        pattern, prefix = like_pattern(query), like_pattern(query, prefix=True)
        where = (
            r"l.visibility = ? AND (l.list_name LIKE ? ESCAPE '\' OR u.username LIKE ? ESCAPE '\')"
        )
        where_params = (Visibility.PUBLIC.value, pattern, pattern)

        total = await self._count(
            f"SELECT COUNT(*) FROM lists l JOIN users u ON u.id = l.user_id WHERE {where}",
            where_params,
        )
        cursor = await conn.execute(
            rf"""
            SELECT l.*, u.username AS owner_username
            FROM lists l
            JOIN users u ON u.id = l.user_id
            WHERE {where}
            ORDER BY CASE WHEN l.list_name LIKE ? ESCAPE '\' THEN 0 ELSE 1 END,
                     l.created_at DESC, l.id
            LIMIT ? OFFSET ?
            """,
            (*where_params, prefix, limit, offset),
        )
        return await self._hydrate_lists(await cursor.fetchall()), total

    # --- Vector queries ---

    async def nearest_tools(
        self,
        vector: np.ndarray,
        scope: ToolScope,
        limit: int,
        max_distance: float,
    ) -> list[tuple[Tool, float]]:
        """Embedded tools by ascending cosine distance, below max_distance."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT * FROM tools WHERE visibility = ? AND embedding IS NOT NULL",
            (scope.visibility.value,),
        )
        ranked = _rank_by_distance(await cursor.fetchall(), vector, limit, max_distance)
        tools = await self._hydrate_tools([row for row, _ in ranked])
        return [(tool, distance) for tool, (_, distance) in zip(tools, ranked)]

    async def nearest_submissions(
        self,
        vector: np.ndarray,
        scope: SubmissionScope,
        limit: int,
        max_distance: float,
    ) -> list[tuple[Submission, float]]:
        """Embedded submissions by ascending cosine distance, below max_distance."""
        conn = await self._get_connection()
        sql = "SELECT * FROM submissions WHERE status = ? AND embedding IS NOT NULL"
        params: list[Any] = [scope.status.value]
        if scope.submission_type is not None:
            sql += " AND submission_type = ?"
            params.append(scope.submission_type.value)

        cursor = await conn.execute(sql, params)
        ranked = _rank_by_distance(await cursor.fetchall(), vector, limit, max_distance)
        submissions = await self._hydrate_submissions([row for row, _ in ranked])
        return [(s, distance) for s, (_, distance) in zip(submissions, ranked)]

    # --- Writes ---

    async def add_user(
        self,
        username: str,
        user_bio: str | None = None,
        user_status: UserStatus = UserStatus.ACTIVE,
        created_at: datetime | None = None,
    ) -> int:
        """Insert a user. Returns user ID."""
        return await self._insert(
            "INSERT INTO users (username, user_bio, user_status, created_at) VALUES (?, ?, ?, ?)",
            (username, user_bio, UserStatus(user_status).value, _timestamp(created_at)),
        )

    async def add_tag(
        self,
        tag_name: str,
        tag_description: str | None = None,
        tag_type: TagType = TagType.CATEGORY,
        parent_id: int | None = None,
        created_at: datetime | None = None,
    ) -> int:
        """Insert a tag. Returns tag ID."""
        return await self._insert(
            """
            INSERT INTO tags (tag_name, tag_description, tag_type, parent_id, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (tag_name, tag_description, TagType(tag_type).value, parent_id, _timestamp(created_at)),
        )

    async def add_tool(
        self,
        user_id: int,
        tool_name: str,
        tool_description: str | None = None,
        tool_url: str | None = None,
        author_note: str | None = None,
        visibility: Visibility = Visibility.PUBLIC,
        tags: Sequence[str] = (),
        created_at: datetime | None = None,
    ) -> int:
        """Insert a tool, creating any tags that do not exist yet. Returns tool ID."""
        tool_id = await self._insert(
            """
            INSERT INTO tools
            (user_id, tool_name, tool_description, tool_url, author_note, visibility, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                tool_name,
                tool_description,
                tool_url,
                author_note,
                Visibility(visibility).value,
                _timestamp(created_at),
            ),
        )
        await self._link("tool_tags", "tool_id", "tag_id", tool_id, await self._ensure_tags(tags))
        return tool_id

    async def add_submission(
        self,
        user_id: int,
        submission_name: str | None = None,
        submission_description: str | None = None,
        submission_url: str | None = None,
        submission_type: SubmissionType = SubmissionType.ARTICLE,
        status: SubmissionStatus = SubmissionStatus.COMPLETED,
        author_note: str | None = None,
        tags: Sequence[str] = (),
        tool_ids: Sequence[int] = (),
        created_at: datetime | None = None,
    ) -> int:
        """Insert a submission with its tags and tools. Returns submission ID."""
        submission_id = await self._insert(
            """
            INSERT INTO submissions
            (user_id, submission_type, status, submission_url, submission_name,
             submission_description, author_note, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                SubmissionType(submission_type).value,
                SubmissionStatus(status).value,
                submission_url,
                submission_name,
                submission_description,
                author_note,
                _timestamp(created_at),
            ),
        )
        await self._link(
            "submission_tags", "submission_id", "tag_id", submission_id, await self._ensure_tags(tags)
        )
        await self._link("submission_tools", "submission_id", "tool_id", submission_id, tool_ids)
        return submission_id

    async def add_list(
        self,
        user_id: int,
        list_name: str,
        visibility: Visibility = Visibility.PRIVATE,
        tool_ids: Sequence[int] = (),
        created_at: datetime | None = None,
    ) -> int:
        """Insert a list with its tools. Returns list ID."""
        list_id = await self._insert(
            "INSERT INTO lists (user_id, list_name, visibility, created_at) VALUES (?, ?, ?, ?)",
            (user_id, list_name, Visibility(visibility).value, _timestamp(created_at)),
        )
        await self._link("list_tools", "list_id", "tool_id", list_id, tool_ids)
        return list_id

    async def set_embedding(self, kind: str, entity_id: int, vector: np.ndarray | None) -> None:
        """Store (or clear, with None) the embedding of a tool or submission."""
        table = _embedded_table(kind)
        blob = None if vector is None else np.asarray(vector, dtype=np.float32).ravel().tobytes()
        conn = await self._get_connection()
        await conn.execute(f"UPDATE {table} SET embedding = ? WHERE id = ?", (blob, entity_id))
        await conn.commit()

    async def entities_missing_embeddings(self, kind: str) -> list[Tool] | list[Submission]:
        """Tools or submissions that have no stored embedding yet."""
        table = _embedded_table(kind)
        conn = await self._get_connection()
        cursor = await conn.execute(f"SELECT * FROM {table} WHERE embedding IS NULL ORDER BY id")
        rows = await cursor.fetchall()
        if table == "tools":
            return await self._hydrate_tools(rows)
        return await self._hydrate_submissions(rows)

    async def get_tool(self, tool_id: int) -> Tool | None:
        """Get tool by ID."""
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT * FROM tools WHERE id = ?", (tool_id,))
        row = await cursor.fetchone()
        if row is None:
            return None
        return (await self._hydrate_tools([row]))[0]

    async def get_submission(self, submission_id: int) -> Submission | None:
        """Get submission by ID."""
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT * FROM submissions WHERE id = ?", (submission_id,))
        row = await cursor.fetchone()
        if row is None:
            return None
        return (await self._hydrate_submissions([row]))[0]

    async def counts(self) -> dict[str, int]:
        """Row counts per entity table, plus embedded tool/submission counts."""
        result = {}
        for table in ("users", "tags", "tools", "submissions", "lists"):
            result[table] = await self._count(f"SELECT COUNT(*) FROM {table}")
        for table in EMBEDDED_KINDS:
            result[f"{table}_embedded"] = await self._count(
                f"SELECT COUNT(*) FROM {table} WHERE embedding IS NOT NULL"
            )
        return result

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    # --- Internals ---

    async def _insert(self, sql: str, params: Sequence[Any]) -> int:
        conn = await self._get_connection()
        cursor = await conn.execute(sql, params)
        await conn.commit()
        return cursor.lastrowid

    async def _count(self, sql: str, params: Sequence[Any] = ()) -> int:
        conn = await self._get_connection()
        cursor = await conn.execute(sql, params)
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def _ensure_tags(self, names: Iterable[str]) -> list[int]:
        conn = await self._get_connection()
        ids = []
        for name in dict.fromkeys(n.strip() for n in names if n and n.strip()):
            cursor = await conn.execute("SELECT id FROM tags WHERE tag_name = ?", (name,))
            row = await cursor.fetchone()
            ids.append(row[0] if row else await self.add_tag(name))
        return ids

    async def _link(
        self,
        table: str,
        owner_column: str,
        target_column: str,
        owner_id: int,
        target_ids: Iterable[int],
    ) -> None:
        rows = [(owner_id, target_id) for target_id in dict.fromkeys(target_ids)]
        if not rows:
            return
        conn = await self._get_connection()
        await conn.executemany(
            f"INSERT OR IGNORE INTO {table} ({owner_column}, {target_column}) VALUES (?, ?)",
            rows,
        )
        await conn.commit()

    async def _names_by_owner(
        self,
        sql: str,
        owner_ids: Sequence[int],
    ) -> dict[int, list[str]]:
        """Run ``sql`` (with one ``{ids}`` placeholder) and group names by owner id."""
        grouped: dict[int, list[str]] = defaultdict(list)
        if not owner_ids:
            return grouped
        conn = await self._get_connection()
        placeholders = ", ".join("?" for _ in owner_ids)
        cursor = await conn.execute(sql.format(ids=placeholders), list(owner_ids))
        for owner_id, name in await cursor.fetchall():
            grouped[owner_id].append(name)
        return grouped

    async def _hydrate_tools(self, rows: Sequence[aiosqlite.Row]) -> list[Tool]:
        ids = [row["id"] for row in rows]
        tags = await self._names_by_owner(
            """
            SELECT tt.tool_id, g.tag_name FROM tool_tags tt
            JOIN tags g ON g.id = tt.tag_id
            WHERE tt.tool_id IN ({ids}) ORDER BY g.tag_name
            """,
            ids,
        )
        return [
            Tool(
                id=row["id"],
                user_id=row["user_id"],
                tool_name=row["tool_name"],
                tool_description=row["tool_description"],
                tool_url=row["tool_url"],
                author_note=row["author_note"],
                visibility=row["visibility"],
                tags=tags.get(row["id"], []),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    async def _hydrate_submissions(self, rows: Sequence[aiosqlite.Row]) -> list[Submission]:
        ids = [row["id"] for row in rows]
        tags = await self._names_by_owner(
            """
            SELECT st.submission_id, g.tag_name FROM submission_tags st
            JOIN tags g ON g.id = st.tag_id
            WHERE st.submission_id IN ({ids}) ORDER BY g.tag_name
            """,
            ids,
        )
        tools = await self._names_by_owner(
            """
            SELECT st.submission_id, t.tool_name FROM submission_tools st
            JOIN tools t ON t.id = st.tool_id
            WHERE st.submission_id IN ({ids}) ORDER BY t.tool_name
            """,
            ids,
        )
        usernames = await self._usernames({row["user_id"] for row in rows})
        return [
            Submission(
                id=row["id"],
                user_id=row["user_id"],
                username=usernames.get(row["user_id"]),
                submission_type=row["submission_type"],
                status=row["status"],
                submission_url=row["submission_url"],
                submission_name=row["submission_name"],
                submission_description=row["submission_description"],
                author_note=row["author_note"],
                tags=tags.get(row["id"], []),
                tools=tools.get(row["id"], []),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    async def _hydrate_lists(self, rows: Sequence[aiosqlite.Row]) -> list[ToolList]:
        tool_names = await self._names_by_owner(
            """
            SELECT lt.list_id, t.tool_name FROM list_tools lt
            JOIN tools t ON t.id = lt.tool_id
            WHERE lt.list_id IN ({ids}) ORDER BY t.tool_name
            """,
            [row["id"] for row in rows],
        )
        return [
            ToolList(
                id=row["id"],
                user_id=row["user_id"],
                username=row["owner_username"],
                list_name=row["list_name"],
                visibility=row["visibility"],
                tool_names=tool_names.get(row["id"], []),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    async def _usernames(self, user_ids: set[int]) -> dict[int, str]:
        if not user_ids:
            return {}
        conn = await self._get_connection()
        placeholders = ", ".join("?" for _ in user_ids)
        cursor = await conn.execute(
            f"SELECT id, username FROM users WHERE id IN ({placeholders})", list(user_ids)
        )
        return {row[0]: row[1] for row in await cursor.fetchall()}

    @staticmethod
    def _tag(row: aiosqlite.Row) -> Tag:
        return Tag(
            id=row["id"],
            tag_name=row["tag_name"],
            tag_description=row["tag_description"],
            tag_type=row["tag_type"],
            parent_id=row["parent_id"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _user(row: aiosqlite.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            user_bio=row["user_bio"],
            user_status=row["user_status"],
            created_at=row["created_at"],
        )


def _embedded_table(kind: str) -> str:
    if kind not in EMBEDDED_KINDS:
        raise ValidationError(f"Unknown embedded entity kind: {kind!r}", {"kind": kind})
    return kind


def _rank_by_distance(
    rows: Sequence[aiosqlite.Row],
    vector: np.ndarray,
    limit: int,
    max_distance: float,
) -> list[tuple[aiosqlite.Row, float]]:
    """
    Exact cosine kNN over embedding blobs.

    Rows whose embedding has the wrong dimension or zero norm are skipped.

    Returns:
        (row, distance) pairs with distance < max_distance, ascending
        distance then id, at most ``limit`` long
    """
    query = np.asarray(vector, dtype=np.float32).ravel()
    query_norm = float(np.linalg.norm(query))
    if not rows or query_norm == 0.0 or limit <= 0:
        return []

    expected_bytes = query.shape[0] * 4
    usable = [row for row in rows if row["embedding"] and len(row["embedding"]) == expected_bytes]
    if len(usable) < len(rows):
        logger.warning("Skipped %d embeddings with wrong dimension", len(rows) - len(usable))
    if not usable:
        return []

    matrix = np.vstack([np.frombuffer(row["embedding"], dtype=np.float32) for row in usable])
    norms = np.linalg.norm(matrix, axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        distances = 1.0 - (matrix @ query) / (norms * query_norm)

    scored = [
        (row, float(distance))
        for row, distance, norm in zip(usable, distances, norms)
        if norm > 0 and distance < max_distance
    ]
    scored.sort(key=lambda pair: (pair[1], pair[0]["id"]))
    return scored[:limit]
