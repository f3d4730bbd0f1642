from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Tuple

from livematrix.errors import ParseError

HISTORY_LIMIT = 128


@dataclass(frozen=True)
class HistoryPoint:
    at: float
    value: float


@dataclass(frozen=True)
class DataSnapshot:
    """Latest fully parsed payload for one data source.

    Never mutated after construction; the store replaces it wholesale.
    Build through ``DataSnapshot.build`` so required fields are checked
    before anything can be published.
    """

    source_id: str
    fetched_at: float
    values: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    history: Tuple[HistoryPoint, ...] = ()

    @classmethod
    def build(
        cls,
        source_id: str,
        fetched_at: float,
        values: Mapping[str, Any],
        history: Iterable[HistoryPoint] = (),
        *,
        required: Iterable[str] = (),
        max_history: int = HISTORY_LIMIT,
    ) -> "DataSnapshot":
        if not source_id:
            raise ParseError("snapshot needs a source id")
        missing = [key for key in required if values.get(key) is None]
        if missing:
            raise ParseError(f"{source_id}: missing required field(s) {', '.join(missing)}")
        points = tuple(history)[: max(0, int(max_history))]
        for p in points:
            if not isinstance(p, HistoryPoint):
                raise ParseError(f"{source_id}: history entries must be HistoryPoint, got {type(p).__name__}")
        return cls(
            source_id=source_id,
            fetched_at=float(fetched_at),
            values=MappingProxyType(dict(values)),
            history=points,
        )

    def get(self, key: str, default: Any = None) -> Any:
        value = self.values.get(key)
        return default if value is None else value

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def history_values(self, limit: int | None = None) -> list[float]:
        pts = self.history if limit is None else self.history[: max(0, limit)]
        return [p.value for p in pts]
