from collections.abc import Callable
from typing import Any

import pytest


class Recorder:
    """Builds handlers that record their calls, in call order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def handler(self, name: str, result: Any = None) -> Callable[..., Any]:
        def handler(*args: Any) -> Any:
            self.calls.append((name, args))
            return result

        handler.__qualname__ = name
        return handler

    def async_handler(self, name: str, result: Any = None) -> Callable[..., Any]:
        async def handler(*args: Any) -> Any:
            self.calls.append((name, args))
            return result

        handler.__qualname__ = name
        return handler


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
