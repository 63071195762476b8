"""Navigation collaborator used by the catalog engine and payment poller."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Navigator(ABC):
    """Abstract address bar / router."""

    @abstractmethod
    def replace_query(self, query: dict[str, str]) -> None:
        """Replace the current URL query without adding a history entry."""

    @abstractmethod
    def navigate(self, path: str) -> None:
        """Move the user to another screen."""


class RecordingNavigator(Navigator):
    """Navigator that remembers requested moves so the API can return them."""

    def __init__(self) -> None:
        self.replaced_queries: list[dict[str, str]] = []
        self.paths: list[str] = []

    def replace_query(self, query: dict[str, str]) -> None:
        self.replaced_queries.append(dict(query))

    def navigate(self, path: str) -> None:
        self.paths.append(path)

    @property
    def last_query(self) -> dict[str, str] | None:
        return self.replaced_queries[-1] if self.replaced_queries else None

    @property
    def last_path(self) -> str | None:
        return self.paths[-1] if self.paths else None
