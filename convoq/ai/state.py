"""
Per-key request lifecycle tracking (loading / error / value).

One FeatureState per feature. Mutation happens on the event loop only, so
there is exactly one writer per key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class FeatureRequestState(Generic[T]):
    key: str
    loading: bool = False
    error: str | None = None
    value: T | None = None


class FeatureState(Generic[T]):
    def __init__(self, name: str):
        self.name = name
        self._states: dict[str, FeatureRequestState[T]] = {}

    def _state(self, key: str) -> FeatureRequestState[T]:
        state = self._states.get(key)
        if state is None:
            state = FeatureRequestState(key=key)
            self._states[key] = state
        return state

    def set_loading(self, key: str, loading: bool) -> None:
        """Starting a request clears the stale error from the previous one."""
        state = self._state(key)
        if loading:
            state.error = None
        state.loading = loading

    def is_loading(self, key: str) -> bool:
        state = self._states.get(key)
        return state.loading if state else False

    def set_error(self, key: str, message: str | None) -> None:
        self._state(key).error = message

    def error(self, key: str) -> str | None:
        state = self._states.get(key)
        return state.error if state else None

    def set(self, key: str, value: T) -> None:
        self._state(key).value = value

    def value(self, key: str) -> T | None:
        state = self._states.get(key)
        return state.value if state else None

    def get(self, key: str) -> FeatureRequestState[T] | None:
        return self._states.get(key)

    def clear(self, key: str) -> None:
        self._states.pop(key, None)

    def clear_all(self) -> None:
        self._states.clear()

    def any_loading(self) -> bool:
        return any(state.loading for state in self._states.values())

    def first_error(self) -> str | None:
        for state in self._states.values():
            if state.error:
                return state.error
        return None

    def __len__(self) -> int:
        return len(self._states)
