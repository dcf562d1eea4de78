"""Shared test fixtures for hipchat-notifier."""

from __future__ import annotations

import hashlib
from typing import Any, Dict, Iterable, List, Optional
from unittest.mock import MagicMock

import pytest

from hipchat_notifier.commits import Commit
from hipchat_notifier.config import AppConfig, ConfigManager
from hipchat_notifier.markup import MarkupRenderer
from hipchat_notifier.models import RepositoryModel


class InMemoryReader:
    def __init__(self, repo: "InMemoryRepository"):
        self.repo = repo
        self.closed = False

    def parse_commit(self, sha: str) -> Commit:
        if self.closed:
            raise RuntimeError("reader used after close")
        try:
            return self.repo.objects[sha]
        except KeyError:
            raise KeyError(sha)

    def close(self) -> None:
        self.closed = True
        self.repo.readers_closed += 1


class InMemoryRepository:
    """A commit graph with refs; commit times increase with creation order."""

    def __init__(self, name: str = "team/app.git"):
        self.name = name
        self.objects: Dict[str, Commit] = {}
        self.refs: Dict[str, str] = {}
        self.readers_opened = 0
        self.readers_closed = 0
        self._clock = 1_600_000_000

    def commit(self, message: str, parents: Iterable[str] = (), author: str = "Alice Example",
               email: Optional[str] = "Alice@Example.com", when: Optional[int] = None) -> str:
        parents = tuple(parents)
        self._clock += 60
        seed = f"{message}|{','.join(parents)}|{self._clock}".encode()
        sha = hashlib.sha1(seed).hexdigest()
        self.objects[sha] = Commit(
            sha=sha,
            parents=parents,
            author_name=author,
            author_email=email,
            commit_time=when if when is not None else self._clock,
            short_message=message,
        )
        return sha

    def chain(self, count: int, parent: Optional[str] = None, prefix: str = "change") -> List[str]:
        shas = []
        for i in range(count):
            parent = self.commit(f"{prefix} {i + 1}", parents=[parent] if parent else [])
            shas.append(parent)
        return shas

    def resolve(self, revision: str) -> Optional[str]:
        if revision in self.refs:
            return self.refs[revision]
        if revision in self.objects:
            return revision
        return None

    def open_reader(self) -> InMemoryReader:
        self.readers_opened += 1
        return InMemoryReader(self)


def build_config(**hipchat: Any) -> AppConfig:
    data: Dict[str, Any] = {
        "general": {"canonical_url": "https://git.example.com"},
        "hipchat": {
            "default_room": "dev",
            "default_token": "default-token",
            "room_tokens": {"ops": "ops-token"},
        },
    }
    data["hipchat"].update(hipchat)
    return AppConfig(**data)


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def config() -> AppConfig:
    return build_config()


@pytest.fixture
def config_manager(config: AppConfig) -> ConfigManager:
    return ConfigManager.from_model(config)


@pytest.fixture
def renderer() -> MarkupRenderer:
    return MarkupRenderer()


@pytest.fixture
def repository_model() -> RepositoryModel:
    return RepositoryModel(name="team/app.git", project_path="team")


@pytest.fixture
def session() -> MagicMock:
    """A stand-in for requests.Session whose posts answer 204."""
    sess = MagicMock()
    sess.headers = {}
    sess.post.return_value = MagicMock(status_code=204)
    return sess
