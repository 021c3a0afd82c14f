from __future__ import annotations

import abc
import typing as t

T = t.TypeVar("T")


class Stream(t.Generic[T]):
    """Finite, single-use buffer of stage output."""

    def __init__(self, items: t.Optional[t.Iterable[T]] = None) -> None:
        self._items: t.List[T] = list(items or [])

    def put(self, item: T) -> None:
        self._items.append(item)

    def remaining(self) -> int:
        return len(self._items)

    def drain(self) -> t.List[T]:
        out, self._items = self._items, []
        return out


class Stage(abc.ABC, t.Generic[T]):
    """Consume a whole batch, then expose the results as a stream."""

    def initialize(self) -> None:
        pass

    @abc.abstractmethod
    def consume(self, records: t.List[t.Any]) -> None:
        ...

    @abc.abstractmethod
    def get_stream(self) -> Stream[T]:
        ...
