"""Append-only журнал операций пула."""

from typing import Iterator, List, Optional

from cpamm.core.domain.events import EventKind, EventRecord


class EventLog:
    """Упорядоченный журнал EventRecord.

    Записи неизменяемы; журнал только дополняется. Читатели получают
    кортежи, поэтому чтение параллельно с записью не требует блокировки.
    """

    def __init__(self):
        self._records: List[EventRecord] = []

    def next_sequence(self) -> int:
        return len(self._records) + 1

    def append(self, record: EventRecord) -> EventRecord:
        """Добавление записи.

        Raises:
            ValueError: Если sequence нарушает порядок журнала
        """
        expected = self.next_sequence()
        if record.sequence != expected:
            raise ValueError(
                f"out-of-order event: sequence={record.sequence}, expected={expected}"
            )
        self._records.append(record)
        return record

    def records(self, kind: Optional[EventKind] = None) -> tuple[EventRecord, ...]:
        """Снимок журнала, опционально отфильтрованный по виду операции."""
        snapshot = tuple(self._records)
        if kind is None:
            return snapshot
        return tuple(r for r in snapshot if r.kind == kind)

    def last(self) -> Optional[EventRecord]:
        return self._records[-1] if self._records else None

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[EventRecord]:
        return iter(tuple(self._records))

    def __getitem__(self, index: int) -> EventRecord:
        return self._records[index]
