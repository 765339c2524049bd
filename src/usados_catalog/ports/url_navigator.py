from __future__ import annotations

from abc import ABC, abstractmethod


class UrlNavigator(ABC):
    """
    Port for the listing URL, the source of truth for filter/sort state.

    The controller only ever replaces the current entry; it never pushes, so
    filter changes do not pollute the browser history.
    """

    @abstractmethod
    def current(self) -> str:
        """Current query string (without the leading '?')."""
        ...

    @abstractmethod
    def replace(self, path: str, query: str) -> None:
        """Replace the current URL with path?query (path alone when query is empty)."""
        ...
