#!/usr/bin/env python3
"""
Build Index - Load a catalog export into SQLite and materialize embeddings.

This script:
1. Loads users, tags, tools, submissions and lists from a JSON export
2. Creates sentence embeddings for tools and submissions that lack one

Catalog format (every key optional):
    {
      "users": [{"username": "ada", "user_bio": "..."}],
      "tags": [{"tag_name": "frontend", "tag_type": "category"}],
      "tools": [{"user": "ada", "tool_name": "React", "tags": ["frontend"]}],
      "submissions": [{"user": "ada", "submission_name": "...", "tools": ["React"]}],
      "lists": [{"user": "ada", "list_name": "Favourites", "visibility": "public",
                 "tools": ["React"]}]
    }

Usage:
    python tools/build_index.py data/catalog.json
    python tools/build_index.py data/catalog.json --skip-embeddings
    python tools/build_index.py --embeddings-only
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from toolfinder.adapters import CatalogRepository, SentenceTransformerEmbedder
from toolfinder.adapters.sqlite import EMBEDDED_KINDS
from toolfinder.config import get_settings

logger = logging.getLogger(__name__)

MIN_EMBEDDING_TEXT = 10
BATCH_SIZE = 32


def _created_at(record: dict[str, Any]) -> datetime | None:
    value = record.get("created_at")
    return datetime.fromisoformat(value) if value else None


async def load_catalog(repo: CatalogRepository, path: Path) -> dict[str, int]:
    """Insert every entity in the export, resolving usernames and tool names to IDs."""
    data = json.loads(path.read_text(encoding="utf-8"))
    loaded = {"users": 0, "tags": 0, "tools": 0, "submissions": 0, "lists": 0}

    user_ids: dict[str, int] = {}
    for record in data.get("users", []):
        user_ids[record["username"]] = await repo.add_user(
            record["username"],
            user_bio=record.get("user_bio"),
            user_status=record.get("user_status", "active"),
            created_at=_created_at(record),
        )
        loaded["users"] += 1

    for record in data.get("tags", []):
        await repo.add_tag(
            record["tag_name"],
            tag_description=record.get("tag_description"),
            tag_type=record.get("tag_type", "category"),
            created_at=_created_at(record),
        )
        loaded["tags"] += 1

    tool_ids: dict[str, int] = {}
    for record in data.get("tools", []):
        user_id = _owner(record, user_ids)
        if user_id is None:
            continue
        tool_ids[record["tool_name"]] = await repo.add_tool(
            user_id,
            record["tool_name"],
            tool_description=record.get("tool_description"),
            tool_url=record.get("tool_url"),
            author_note=record.get("author_note"),
            visibility=record.get("visibility", "public"),
            tags=record.get("tags", []),
            created_at=_created_at(record),
        )
        loaded["tools"] += 1

    for record in data.get("submissions", []):
        user_id = _owner(record, user_ids)
        if user_id is None:
            continue
        await repo.add_submission(
            user_id,
            submission_name=record.get("submission_name"),
            submission_description=record.get("submission_description"),
            submission_url=record.get("submission_url"),
            submission_type=record.get("submission_type", "article"),
            status=record.get("status", "completed"),
            author_note=record.get("author_note"),
            tags=record.get("tags", []),
            tool_ids=_tool_refs(record, tool_ids),
            created_at=_created_at(record),
        )
        loaded["submissions"] += 1

    for record in data.get("lists", []):
        user_id = _owner(record, user_ids)
        if user_id is None:
            continue
        await repo.add_list(
            user_id,
            record["list_name"],
            visibility=record.get("visibility", "private"),
            tool_ids=_tool_refs(record, tool_ids),
            created_at=_created_at(record),
        )
        loaded["lists"] += 1

    logger.info(
        "Loaded %d users, %d tags, %d tools, %d submissions, %d lists",
        loaded["users"],
        loaded["tags"],
        loaded["tools"],
        loaded["submissions"],
        loaded["lists"],
    )
    return loaded


def _owner(record: dict[str, Any], user_ids: dict[str, int]) -> int | None:
    user_id = user_ids.get(record.get("user", ""))
    if user_id is None:
        logger.warning("Skipping record with unknown user %r: %s", record.get("user"), record)
    return user_id


def _tool_refs(record: dict[str, Any], tool_ids: dict[str, int]) -> list[int]:
    refs = []
    for name in record.get("tools", []):
        if name in tool_ids:
            refs.append(tool_ids[name])
        else:
            logger.warning("Unknown tool reference %r", name)
    return refs


async def embed_missing(
    repo: CatalogRepository,
    embedder: SentenceTransformerEmbedder,
    kind: str,
) -> int:
    """Embed tools or submissions that have no stored vector yet."""
    entities = await repo.entities_missing_embeddings(kind)
    pending = []
    for entity in entities:
        text = entity.embedding_text()
        if len(text) < MIN_EMBEDDING_TEXT:
            logger.debug("Skipping %s %d: text too short", kind, entity.id)
            continue
        pending.append((entity.id, text))

    if not pending:
        logger.info("No %s need embeddings", kind)
        return 0

    logger.info("Generating embeddings for %d %s...", len(pending), kind)
    embedded = 0
    for start in range(0, len(pending), BATCH_SIZE):
        batch = pending[start : start + BATCH_SIZE]
        vectors = await embedder.embed_many([text for _, text in batch], batch_size=BATCH_SIZE)
        for (entity_id, _), vector in zip(batch, vectors):
            await repo.set_embedding(kind, entity_id, vector)
        embedded += len(batch)
        logger.info("  Embedded %d/%d %s", embedded, len(pending), kind)

    return embedded


async def main() -> int:
    parser = argparse.ArgumentParser(description="Load a catalog export and build embeddings")
    parser.add_argument("catalog", nargs="?", type=Path, help="JSON catalog export")
    parser.add_argument("--skip-embeddings", action="store_true", help="Only load rows")
    parser.add_argument("--embeddings-only", action="store_true", help="Only embed stored rows")
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.catalog is None and not args.embeddings_only:
        parser.error("catalog is required unless --embeddings-only is given")

    Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)
    repo = CatalogRepository(settings.db_path)
    try:
        await repo.initialize()

        if not args.embeddings_only:
            counts = await repo.counts()
            if counts["tools"] or counts["submissions"]:
                logger.info("Database already has a catalog. Skipping load.")
            else:
                await load_catalog(repo, args.catalog)

        if not args.skip_embeddings:
            embedder = SentenceTransformerEmbedder(settings.embedding_model)
            for kind in EMBEDDED_KINDS:
                await embed_missing(repo, embedder, kind)

        counts = await repo.counts()
    finally:
        await repo.close()

    print("\n" + "=" * 50)
    print("INDEX BUILD COMPLETE")
    print("=" * 50)
    print(f"Users:        {counts['users']:,}")
    print(f"Tags:         {counts['tags']:,}")
    print(f"Tools:        {counts['tools']:,} ({counts['tools_embedded']:,} embedded)")
    print(
        f"Submissions:  {counts['submissions']:,} "
        f"({counts['submissions_embedded']:,} embedded)"
    )
    print(f"Lists:        {counts['lists']:,}")
    print("=" * 50)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
