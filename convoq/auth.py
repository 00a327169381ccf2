"""
Auth session seam.

convoq never signs anyone in. The host hands over an object that knows the
current user and can mint (or refresh) a bearer token for remote calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class AuthSession(Protocol):
    @property
    def current_user_id(self) -> str | None: ...

    async def get_token(self, force_refresh: bool = False) -> str | None: ...


@dataclass
class StaticAuthSession:
    """
    AuthSession with a fixed user and token.

    Handy for scripts and tests; sign_out() drops both.
    """

    user_id: str | None = None
    token: str | None = None
    refresh_count: int = 0

    @property
    def current_user_id(self) -> str | None:
        return self.user_id

    async def get_token(self, force_refresh: bool = False) -> str | None:
        if force_refresh:
            self.refresh_count += 1
        return self.token

    def sign_in(self, user_id: str, token: str | None = None) -> None:
        self.user_id = user_id
        self.token = token

    def sign_out(self) -> None:
        self.user_id = None
        self.token = None
