"""
Shared serialization for vibechecc entities.

Every entity is a dataclass stored as a flat document. Storage hands back
dicts with the record id under ``_id``; entities expose it as ``id``.
"""

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, ClassVar, Dict, Tuple, Type, TypeVar

from vibechecc.errors import ValidationError
from vibechecc.utils.dates import parse_datetime

T = TypeVar("T", bound="Entity")


@dataclass
class Entity:
    """
    Base class for stored entities.

    Subclasses declare which fields hold datetimes so they can be written
    as ISO strings and parsed back on load.
    """

    DATETIME_FIELDS: ClassVar[Tuple[str, ...]] = ("created_at",)

    def _fail(self, errors: list) -> None:
        if errors:
            raise ValidationError(
                f"{self.__class__.__name__} validation failed: {'; '.join(errors)}"
            )

    def to_record(self) -> Dict[str, Any]:
        """
        Convert to storage fields.

        The ``id`` is not part of the stored fields; storage assigns it.
        """
        data = {}
        for f in fields(self):
            if f.name == "id":
                continue
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, list):
                value = list(value)
            elif isinstance(value, dict):
                value = dict(value)
            data[f.name] = value
        return data

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation including the record id."""
        data = self.to_record()
        data["id"] = self.id
        return data

    @classmethod
    def from_record(cls: Type[T], record: Dict[str, Any]) -> T:
        """
        Build an entity from a storage record.

        Unknown keys are ignored so older or wider tables still load.
        """
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in record.items() if k in known}
        if "_id" in record:
            data["id"] = record["_id"]

        for name in cls.DATETIME_FIELDS:
            if name in data:
                data[name] = parse_datetime(data[name])
                if data[name] is None:
                    del data[name]

        return cls(**data)
