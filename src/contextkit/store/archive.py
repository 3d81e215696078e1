import contextlib
import json
import logging
import shutil
import tempfile
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, delete, func, insert, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from contextkit.exceptions import StoreError
from contextkit.store.schema import activities_table, contexts_table, metadata
from domain_models.manifest import ActivitySnapshot, ContextSnapshot
from domain_models.types import IdentifierPath

logger = logging.getLogger(__name__)


def path_key(identifier_path: IdentifierPath) -> str:
    """Stable string key for an identifier path."""
    return json.dumps(list(identifier_path))


class SqlContextArchive:
    """
    SQLite archive of the materialized context tree.
    Uses SQLAlchemy Core; every write replaces the previous snapshot atomically.

    Schema:
        contexts: one row per materialized node, keyed by its JSON identifier path
        activities: the current activity of a node, items stored as JSON
    """

    def __init__(self, db_path: Path | None = None) -> None:
        """
        Initialize the archive.

        Args:
            db_path: Optional path to the database file. If None, a temporary file is created.
        """
        if db_path:
            self.temp_dir = None
            self.db_path = db_path.absolute()
        else:
            self.temp_dir = tempfile.mkdtemp()
            self.db_path = Path(self.temp_dir) / "contexts.db"

        db_url = f"sqlite:///{self.db_path}"

        # Snapshots are written from worker threads.
        try:
            self.engine: Engine = create_engine(
                db_url, connect_args={"check_same_thread": False}
            )
        except Exception as e:
            msg = f"Failed to create database engine: {e}"
            raise StoreError(msg) from e

        self._setup_db()

    def _setup_db(self) -> None:
        """Initialize the database schema."""
        try:
            with self.engine.begin() as conn:
                conn.execute(text("PRAGMA journal_mode=WAL;"))
                conn.execute(text("PRAGMA synchronous=NORMAL;"))
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            msg = f"Failed to create database schema: {e}"
            raise StoreError(msg) from e

    def write_snapshot(self, contexts: Iterable[ContextSnapshot]) -> None:
        """Replace the archived tree with `contexts` in a single transaction."""
        context_rows: list[dict[str, Any]] = []
        activity_rows: list[dict[str, Any]] = []
        for context in contexts:
            key = path_key(context.identifier_path)
            parent = context.identifier_path[:-1]
            context_rows.append(
                {
                    "path_key": key,
                    "parent_key": path_key(parent) if parent else None,
                    "identifier": context.identifier_path[-1],
                    "title": context.title,
                    "type": int(context.type),
                    "topic": context.topic.value if context.topic else None,
                    "display_order": context.display_order,
                    "universal_link_url": context.universal_link_url,
                    "is_active": context.is_active,
                    "date_created": context.date_created.isoformat(),
                }
            )
            if context.activity is not None:
                activity_rows.append(_activity_row(key, context.activity))

        try:
            with self.engine.begin() as conn:
                conn.execute(delete(activities_table))
                conn.execute(delete(contexts_table))
                if context_rows:
                    conn.execute(insert(contexts_table), context_rows)
                if activity_rows:
                    conn.execute(insert(activities_table), activity_rows)
        except SQLAlchemyError as e:
            msg = f"Failed to write context snapshot: {e}"
            raise StoreError(msg) from e

        logger.debug(f"Archived {len(context_rows)} contexts, {len(activity_rows)} activities")

    def load_snapshot(self) -> list[ContextSnapshot]:
        """Read the archived tree back, parents before children."""
        stmt = (
            select(contexts_table, activities_table)
            .outerjoin(
                activities_table,
                activities_table.c.context_key == contexts_table.c.path_key,
            )
            .order_by(contexts_table.c.path_key)
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as e:
            msg = f"Failed to read context snapshot: {e}"
            raise StoreError(msg) from e

        snapshots = [_snapshot_from_row(row) for row in rows]
        snapshots.sort(key=lambda s: (len(s.identifier_path), s.identifier_path))
        return snapshots

    def count_contexts(self) -> int:
        stmt = select(func.count()).select_from(contexts_table)
        try:
            with self.engine.connect() as conn:
                return conn.execute(stmt).scalar() or 0
        except SQLAlchemyError as e:
            msg = f"Failed to count contexts: {e}"
            raise StoreError(msg) from e

    def close(self) -> None:
        """Close the engine and cleanup temp files."""
        with contextlib.suppress(Exception):
            self.engine.dispose()
        if self.temp_dir:
            with contextlib.suppress(Exception):
                shutil.rmtree(self.temp_dir, ignore_errors=True)

    def __enter__(self) -> "SqlContextArchive":
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()


def _activity_row(key: str, activity: ActivitySnapshot) -> dict[str, Any]:
    primary = activity.primary_item
    return {
        "context_key": key,
        "state": activity.state.value,
        "progress": activity.progress,
        "progress_ranges": json.dumps(activity.progress_ranges),
        "duration": activity.duration,
        "primary_item": primary.model_dump_json() if primary is not None else None,
        "additional_items": json.dumps(
            [item.model_dump(mode="json") for item in activity.additional_items]
        ),
    }


def _snapshot_from_row(row: Any) -> ContextSnapshot:
    activity = None
    if row["context_key"] is not None:
        activity = ActivitySnapshot.model_validate(
            {
                "state": row["state"],
                "progress": row["progress"],
                "progress_ranges": json.loads(row["progress_ranges"]),
                "duration": row["duration"],
                "primary_item": json.loads(row["primary_item"]) if row["primary_item"] else None,
                "additional_items": json.loads(row["additional_items"]),
            }
        )
    return ContextSnapshot(
        identifier_path=tuple(json.loads(row["path_key"])),
        title=row["title"],
        type=row["type"],
        topic=row["topic"],
        display_order=row["display_order"],
        universal_link_url=row["universal_link_url"],
        is_active=row["is_active"],
        date_created=datetime.fromisoformat(row["date_created"]),
        activity=activity,
    )
