from pathlib import Path

import pytest

from disaster_map_ingest.database import PostStore


@pytest.fixture
def store(tmp_path: Path) -> PostStore:
    return PostStore(tmp_path / "posts.db")
