from __future__ import annotations

from usados_catalog.ports.url_navigator import UrlNavigator


class InMemoryUrlNavigator(UrlNavigator):
    """
    URL holder for tests and server-side rendering.

    Every replace() is recorded so callers can assert on the exact sequence
    of URL updates.
    """

    def __init__(self, initial_query: str = "") -> None:
        self._query = initial_query.lstrip("?")
        self.replacements: list[str] = []

    def current(self) -> str:
        return self._query

    def replace(self, path: str, query: str) -> None:
        self._query = query
        self.replacements.append(f"{path}?{query}" if query else path)

    @property
    def url(self) -> str | None:
        return self.replacements[-1] if self.replacements else None
