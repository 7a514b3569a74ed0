"""Creator directory and campaign store backed by SQLite."""

from campaign_automation.directory.schema import init_directory_tables
from campaign_automation.directory.store import (
    UPDATABLE_CAMPAIGN_FIELDS,
    CreatorDirectory,
    RecordNotFoundError,
)

__all__ = [
    "UPDATABLE_CAMPAIGN_FIELDS",
    "CreatorDirectory",
    "RecordNotFoundError",
    "init_directory_tables",
]
