"""Shared base for row models persisted by the repository."""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict


class RowModel(BaseModel):
    """Pydantic model for one database row.

    Subclasses name their primary-key columns in ``primary_key`` so rows can
    be deduplicated without knowing the table.
    """

    model_config = ConfigDict(use_enum_values=True)

    primary_key: ClassVar[tuple[str, ...]] = ("id",)

    def key(self) -> tuple:
        """Primary-key value tuple of this row."""
        return tuple(getattr(self, name) for name in self.primary_key)

    def as_row(self) -> dict[str, Any]:
        """Column dict ready for named-parameter SQL."""
        return self.model_dump(mode="json")
