"""Shared test fixtures for tide."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from tide.config import TideConfig
from tide.stream.scheduler import VirtualScheduler

POSTS_URL = "https://posts.test/posts"


@pytest.fixture
def scheduler() -> VirtualScheduler:
    return VirtualScheduler()


@pytest.fixture
def config() -> TideConfig:
    """Default timings, a local posts URL."""
    return TideConfig(posts_url=POSTS_URL)


@pytest.fixture
def posts_payload() -> list[dict[str, Any]]:
    """Three well-formed posts in server order."""
    return [
        {"userId": 1, "id": 1, "title": "first", "body": "one"},
        {"userId": 1, "id": 2, "title": "second", "body": "two"},
        {"userId": 2, "id": 7, "title": "seventh", "body": "seven"},
    ]


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode())


class Recorder:
    """Collects everything a subscription delivers."""

    def __init__(self) -> None:
        self.values: list[Any] = []
        self.errors: list[BaseException] = []
        self.completed = 0

    def on_value(self, value: Any) -> None:
        self.values.append(value)

    def on_error(self, exc: BaseException) -> None:
        self.errors.append(exc)

    def on_complete(self) -> None:
        self.completed += 1

    @property
    def handlers(self) -> tuple[Any, Any, Any]:
        return self.on_value, self.on_error, self.on_complete

    @property
    def events(self) -> int:
        return len(self.values) + len(self.errors) + self.completed


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
