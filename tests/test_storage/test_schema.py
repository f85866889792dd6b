"""Tests for schema bootstrap and status parsing."""

from unittest.mock import AsyncMock

import pytest

from pattern_tracker.storage.database import affected_rows
from pattern_tracker.storage.schema import TABLES, create_all


@pytest.mark.parametrize(
    ("status", "expected"),
    [("UPDATE 3", 3), ("INSERT 0 1", 1), ("DELETE 0", 0), ("", 0), (None, 0)],
)
def test_affected_rows(status, expected) -> None:
    assert affected_rows(status) == expected


@pytest.mark.asyncio
async def test_create_all_in_dependency_order(mock_database: AsyncMock) -> None:
    await create_all(mock_database)

    ddl = " ".join(c.args[0] for c in mock_database.execute.call_args_list)
    positions = [ddl.index(f"CREATE TABLE IF NOT EXISTS {table} ") for table in TABLES]
    assert positions == sorted(positions)
