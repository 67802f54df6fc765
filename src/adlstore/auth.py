"""Access token sources. Acquiring and refreshing tokens is left to the application."""

from typing import Callable, Protocol, runtime_checkable

from .core.model import ArgumentError


@runtime_checkable
class TokenProvider(Protocol):
    """Protocol for anything that can hand out a current bearer token."""

    def get_token(self) -> str:
        ...


class StaticTokenProvider:
    """Always returns the same token until told otherwise."""

    def __init__(self, token: str):
        self.update(token)

    def update(self, token: str) -> None:
        if not token or not token.strip():
            raise ArgumentError("token is required")
        self._token = token

    def get_token(self) -> str:
        return self._token


class CallableTokenProvider:
    """Asks a callable for the token on every request, e.g. a refreshing cache."""

    def __init__(self, fetch: Callable[[], str]):
        self._fetch = fetch

    def get_token(self) -> str:
        return self._fetch()
