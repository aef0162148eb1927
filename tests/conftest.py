"""Shared fixtures: config and store on a temporary directory."""

from pathlib import Path

import pytest

from config import Config
from database import BriefStore
from tests.fakes import raw


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(openai_api_key="sk-test", db_path=tmp_path / "briefs.db", log_dir=tmp_path / "log")


@pytest.fixture
def store(config: Config):
    with BriefStore(config.db_path) as s:
        yield s


@pytest.fixture
def sample_raw_items() -> list[dict]:
    return [
        raw("Fed holds rates", "Tue, 14 Oct 2025 12:00:00 +0000", "<p>No change</p>", "https://example.com/fed"),
        raw("fed holds rates", "Tue, 14 Oct 2025 10:00:00 +0000", "dup"),
        raw("Tech rallies", "Tue, 14 Oct 2025 13:00:00 +0000"),
    ]
