"""Primary-key deduplication of rows accumulated across a batch."""

from typing import Iterable, TypeVar

from geostats.models import RowModel

RowT = TypeVar("RowT", bound=RowModel)


def deduplicate(rows: Iterable[RowT]) -> list[RowT]:
    """Drop rows whose primary key was already seen.

    Stable: the first row for each key wins and first-seen order is kept.
    """
    seen: set[tuple] = set()
    unique: list[RowT] = []
    for row in rows:
        key = row.key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(row)
    return unique
