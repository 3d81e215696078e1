from typing import Final

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

# Constants for DB Schema
TABLE_CONTEXTS: Final[str] = "contexts"
TABLE_ACTIVITIES: Final[str] = "activities"
COL_PATH_KEY: Final[str] = "path_key"  # JSON array of the identifier path
COL_PARENT_KEY: Final[str] = "parent_key"
COL_CONTEXT_KEY: Final[str] = "context_key"

# Define schema using SQLAlchemy Core
metadata = MetaData()
contexts_table = Table(
    TABLE_CONTEXTS,
    metadata,
    Column(COL_PATH_KEY, String, primary_key=True),
    Column(COL_PARENT_KEY, String, nullable=True),
    Column("identifier", String, nullable=False),
    Column("title", String, nullable=False),
    Column("type", Integer, nullable=False),
    Column("topic", String, nullable=True),
    Column("display_order", Integer, nullable=False),
    Column("universal_link_url", Text, nullable=True),
    Column("is_active", Boolean, nullable=False),
    Column("date_created", String, nullable=False),  # ISO-8601
    Index("idx_contexts_parent", COL_PARENT_KEY),
)
activities_table = Table(
    TABLE_ACTIVITIES,
    metadata,
    Column(
        COL_CONTEXT_KEY,
        String,
        ForeignKey(f"{TABLE_CONTEXTS}.{COL_PATH_KEY}", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("state", String, nullable=False),
    Column("progress", Float, nullable=False),
    Column("progress_ranges", Text, nullable=False),  # JSON array of [start, end]
    Column("duration", Float, nullable=False),
    Column("primary_item", Text, nullable=True),  # JSON of the primary item
    Column("additional_items", Text, nullable=False),  # JSON array of items
)
