from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from contextkit.exceptions import StoreError
from contextkit.store.archive import SqlContextArchive, path_key
from domain_models.activity import BinaryItem, QuantityItem, ScoreItem
from domain_models.manifest import ActivitySnapshot, ContextSnapshot
from domain_models.types import ActivityState, BinaryValueType, ContextTopic, ContextType


def _snapshot(*identifier_path: str, activity: ActivitySnapshot | None = None) -> ContextSnapshot:
    return ContextSnapshot(
        identifier_path=identifier_path,
        title=identifier_path[-1].title(),
        type=ContextType.CHAPTER,
        topic=ContextTopic.MATH if len(identifier_path) == 1 else None,
        display_order=len(identifier_path),
        universal_link_url=f"https://example.com/{'/'.join(identifier_path)}",
        is_active=activity is not None,
        date_created=datetime(2024, 5, 1, 12, 30, tzinfo=UTC),
        activity=activity,
    )


def test_path_key_is_stable() -> None:
    assert path_key(("math", "algebra")) == '["math", "algebra"]'


def test_write_and_load_snapshot(tmp_path: Path) -> None:
    activity = ActivitySnapshot(
        state=ActivityState.STOPPED,
        progress=0.75,
        progress_ranges=[(0.0, 0.5), (0.6, 0.85)],
        duration=12.5,
        primary_item=BinaryItem(
            identifier="q1", title="Q1", value_type=BinaryValueType.YES_NO, value=False
        ),
        additional_items=[
            ScoreItem(identifier="quiz", title="Quiz", score=4, max_score=5),
            QuantityItem(identifier="hints", title="Hints", quantity=3),
        ],
    )
    contexts = [
        _snapshot("math"),
        _snapshot("math", "algebra", activity=activity),
        _snapshot("math", "algebra", "linear-equations"),
    ]

    with SqlContextArchive(db_path=tmp_path / "contexts.db") as archive:
        archive.write_snapshot(contexts)
        loaded = archive.load_snapshot()

    assert loaded == contexts
    assert loaded[1].activity is not None
    assert loaded[1].activity.progress_ranges == [(0.0, 0.5), (0.6, 0.85)]
    assert isinstance(loaded[1].activity.primary_item, BinaryItem)
    assert [type(item) for item in loaded[1].activity.additional_items] == [ScoreItem, QuantityItem]


def test_load_snapshot_orders_parents_first(tmp_path: Path) -> None:
    with SqlContextArchive(db_path=tmp_path / "contexts.db") as archive:
        archive.write_snapshot([_snapshot("z", "a"), _snapshot("b"), _snapshot("z")])
        loaded = [s.identifier_path for s in archive.load_snapshot()]
    assert loaded == [("b",), ("z",), ("z", "a")]


def test_write_replaces_previous_snapshot(tmp_path: Path) -> None:
    with SqlContextArchive(db_path=tmp_path / "contexts.db") as archive:
        archive.write_snapshot([_snapshot("math"), _snapshot("science")])
        assert archive.count_contexts() == 2

        archive.write_snapshot([_snapshot("history")])
        assert archive.count_contexts() == 1
        assert archive.load_snapshot()[0].identifier_path == ("history",)

        archive.write_snapshot([])
        assert archive.count_contexts() == 0


def test_snapshot_survives_reopen(tmp_path: Path) -> None:
    db_path = tmp_path / "contexts.db"
    with SqlContextArchive(db_path=db_path) as archive:
        archive.write_snapshot([_snapshot("math")])

    with SqlContextArchive(db_path=db_path) as archive:
        assert archive.count_contexts() == 1


def test_temporary_archive_is_removed_on_close() -> None:
    archive = SqlContextArchive()
    assert archive.temp_dir is not None
    temp_dir = Path(archive.temp_dir)
    archive.write_snapshot([_snapshot("math")])
    assert temp_dir.exists()

    archive.close()
    assert not temp_dir.exists()


def test_write_failure_is_wrapped(tmp_path: Path) -> None:
    with SqlContextArchive(db_path=tmp_path / "contexts.db") as archive:
        archive.write_snapshot([_snapshot("math")])

        with (
            patch("contextkit.store.archive.insert", side_effect=SQLAlchemyError("disk I/O error")),
            pytest.raises(StoreError, match="Failed to write context snapshot"),
        ):
            archive.write_snapshot([_snapshot("science")])

        # The failed transaction was rolled back.
        assert archive.load_snapshot()[0].identifier_path == ("math",)
