from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any

from app.motobooster.docstore import DocumentSnapshot

CUSTOMERS = "customers"

ALL_TYPES = "All Types"
VEHICLE_TYPE_OPTIONS: tuple[str, ...] = (
    "Scooter",
    "Underbone",
    "Sport Bike",
    "Cruiser",
    "Touring",
    "Off-Road",
    "Big Bike",
)


class ArchiveState(enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class CustomerRecord:
    """
    A customer document. The archive fields only carry values while
    state is ARCHIVED; to_document() maps them back onto isArchived/archivedAt/archivedBy.
    """

    id: str
    customer_id: str
    name: str
    contact: str = ""
    email: str = ""
    address: str = ""
    vehicle_types: frozenset[str] = field(default_factory=frozenset)
    state: ArchiveState = ArchiveState.ACTIVE
    archived_at: str | None = None
    archived_by: str | None = None

    @property
    def is_archived(self) -> bool:
        return self.state is ArchiveState.ARCHIVED

    @property
    def status_label(self) -> str:
        return "Archived" if self.is_archived else "Active"

    def sorted_vehicle_types(self) -> list[str]:
        order = {t: i for i, t in enumerate(VEHICLE_TYPE_OPTIONS)}
        return sorted(self.vehicle_types, key=lambda t: (order.get(t, len(order)), t))

    def archived(self, *, at: str, by: str | None) -> "CustomerRecord":
        return replace(self, state=ArchiveState.ARCHIVED, archived_at=at, archived_by=by)

    def restored(self) -> "CustomerRecord":
        return replace(self, state=ArchiveState.ACTIVE, archived_at=None, archived_by=None)

    @classmethod
    def from_snapshot(cls, snap: DocumentSnapshot) -> "CustomerRecord":
        d = snap.data
        types = d.get("vehicleTypes")
        archived = bool(d.get("isArchived"))
        return cls(
            id=snap.id,
            customer_id=str(d.get("customerId") or ""),
            name=str(d.get("name") or ""),
            contact=str(d.get("contact") or ""),
            email=str(d.get("email") or ""),
            address=str(d.get("address") or ""),
            vehicle_types=frozenset(str(t) for t in types) if isinstance(types, list) else frozenset(),
            state=ArchiveState.ARCHIVED if archived else ArchiveState.ACTIVE,
            archived_at=d.get("archivedAt") if archived else None,
            archived_by=d.get("archivedBy") if archived else None,
        )

    def archive_fields(self) -> dict[str, Any]:
        return {
            "isArchived": self.is_archived,
            "archivedAt": self.archived_at,
            "archivedBy": self.archived_by,
        }

    def to_document(self) -> dict[str, Any]:
        return {
            "customerId": self.customer_id,
            "name": self.name,
            "contact": self.contact,
            "email": self.email,
            "address": self.address,
            "vehicleTypes": self.sorted_vehicle_types(),
            **self.archive_fields(),
        }
