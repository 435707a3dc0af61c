from pathlib import Path

import pytest

import storage.db
from settings import Settings

API_KEY_VARS = ("GEMINI_API_KEY", "ANTHROPIC_API_KEY", "OPENAI_API_KEY", "PAGESPEED_API_KEY")


@pytest.fixture(autouse=True)
def _no_credentials(monkeypatch):
    for var in API_KEY_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def db(tmp_path: Path, monkeypatch) -> Path:
    path = tmp_path / "test.db"
    monkeypatch.setattr(storage.db, "DB_PATH", str(path))
    storage.db.init_db()
    return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(reports_dir=tmp_path / "reports", task_max_attempts=3)


# -----------------------------
# HTTP test doubles
# -----------------------------
class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", json_data=None):
        self.status_code = status_code
        self.text = text
        self._json = json_data

    def json(self):
        if self._json is None:
            raise ValueError("no json")
        return self._json


class FakeSession:
    """Maps URL -> FakeResponse, or -> exception instance to raise."""

    def __init__(self, routes: dict):
        self.routes = routes
        self.calls: list[str] = []

    def get(self, url, **kwargs):
        self.calls.append(url)
        outcome = self.routes.get(url, FakeResponse(404))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        pass
