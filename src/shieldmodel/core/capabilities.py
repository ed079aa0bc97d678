"""
Optional capabilities of source classes.

A source class does not need to inherit from these protocols; the analyzer
matches the members by signature. They document what is detected and
allow ``isinstance`` checks on instances.
"""

from typing import Callable, Protocol, runtime_checkable


@runtime_checkable
class Commutable(Protocol):
    """Has ``commute(action)``; generated types run the action as a commute."""

    def commute(self, action: Callable[[], None]) -> None:
        ...


@runtime_checkable
class Observable(Protocol):
    """Has ``_on_changed(name)``; generated setters call it after every change."""

    def _on_changed(self, name: str) -> None:
        ...
