from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from app.motobooster.modules.customers.models import ALL_TYPES, VEHICLE_TYPE_OPTIONS, CustomerRecord
from app.motobooster.modules.customers.utils import toggle_vehicle_type

ASC = "asc"
DESC = "desc"

SORT_FIELDS: dict[str, Any] = {
    "customerId": lambda c: c.customer_id.lower(),
    "name": lambda c: c.name.lower(),
    "contact": lambda c: c.contact.lower(),
    "email": lambda c: c.email.lower(),
    "address": lambda c: c.address.lower(),
    "vehicleTypes": lambda c: ", ".join(c.sorted_vehicle_types()).lower(),
    "status": lambda c: c.status_label.lower(),
}
DEFAULT_SORT = ("customerId", ASC)


@dataclass(frozen=True)
class SortState:
    column: str = DEFAULT_SORT[0]
    direction: str = DEFAULT_SORT[1]

    def toggled(self, column: str) -> "SortState":
        """Same column flips direction; a new column starts ascending."""
        if column == self.column:
            return SortState(column, DESC if self.direction == ASC else ASC)
        return SortState(column, ASC)


def matches_search(c: CustomerRecord, term: str) -> bool:
    q = (term or "").strip().lower()
    if not q:
        return True
    haystacks = (
        c.customer_id,
        c.name,
        c.contact,
        c.email,
        c.address,
        " ".join(c.sorted_vehicle_types()),
    )
    return any(q in h.lower() for h in haystacks)


def _with_all_types_marker(types: Iterable[str]) -> set[str]:
    selected = set(types)
    if all(t in selected for t in VEHICLE_TYPE_OPTIONS):
        selected.add(ALL_TYPES)
    return selected


@dataclass
class CustomerEditState:
    """Working copy of the detail form. `customer` is None for a new record."""

    customer: CustomerRecord | None = None
    name: str = ""
    contact: str = ""
    email: str = ""
    address: str = ""
    vehicle_types: set[str] = field(default_factory=set)
    has_unsaved_changes: bool = False

    @classmethod
    def for_record(cls, customer: CustomerRecord | None) -> "CustomerEditState":
        if customer is None:
            return cls()
        return cls(
            customer=customer,
            name=customer.name,
            contact=customer.contact,
            email=customer.email,
            address=customer.address,
            vehicle_types=_with_all_types_marker(customer.vehicle_types),
        )

    @property
    def is_new(self) -> bool:
        return self.customer is None

    @property
    def display_customer_id(self) -> str:
        return self.customer.customer_id if self.customer else "Auto-generated"

    def set_field(self, name: str, value: str) -> None:
        if name not in ("name", "contact", "email", "address"):
            raise KeyError(name)
        setattr(self, name, value)
        self.has_unsaved_changes = True

    def toggle_type(self, vehicle_type: str) -> None:
        self.vehicle_types = toggle_vehicle_type(self.vehicle_types, vehicle_type)
        self.has_unsaved_changes = True

    def payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "contact": self.contact,
            "email": self.email,
            "address": self.address,
            "vehicle_types": sorted(self.vehicle_types),
        }


@dataclass
class CustomerListView:
    """
    In-memory customer list plus the display state derived from it:
    search, vehicle-type filter, archived toggle, sort and select mode.
    `visible()` is recomputed on every call from the full record set.
    """

    records: list[CustomerRecord] = field(default_factory=list)
    search: str = ""
    vehicle_type: str = ""
    show_archived: bool = False
    can_view_archived: bool = False
    sort: SortState = field(default_factory=SortState)
    select_mode: bool = False
    selected: set[str] = field(default_factory=set)

    @classmethod
    def from_args(
        cls,
        records: Iterable[CustomerRecord],
        args: Mapping[str, Any],
        *,
        can_view_archived: bool,
    ) -> "CustomerListView":
        column = (args.get("sort") or DEFAULT_SORT[0]).strip()
        direction = (args.get("dir") or ASC).strip().lower()
        if column not in SORT_FIELDS:
            column = DEFAULT_SORT[0]
        if direction not in (ASC, DESC):
            direction = ASC
        vehicle_type = (args.get("type") or "").strip()
        if vehicle_type not in VEHICLE_TYPE_OPTIONS:
            vehicle_type = ""
        return cls(
            records=list(records),
            search=(args.get("q") or "").strip(),
            vehicle_type=vehicle_type,
            show_archived=(args.get("archived") or "") == "1",
            can_view_archived=can_view_archived,
            sort=SortState(column, direction),
            select_mode=(args.get("select") or "") == "1",
        )

    def to_args(self, **overrides: Any) -> dict[str, str]:
        """Query arguments that reproduce this view (for links and redirects)."""
        args = {
            "q": self.search,
            "type": self.vehicle_type,
            "archived": "1" if self.show_archived else "",
            "sort": self.sort.column,
            "dir": self.sort.direction,
            "select": "1" if self.select_mode else "",
        }
        args.update({k: str(v) for k, v in overrides.items()})
        return {k: v for k, v in args.items() if v}

    def sort_args(self, column: str) -> dict[str, str]:
        nxt = self.sort.toggled(column)
        return self.to_args(sort=nxt.column, dir=nxt.direction)

    def _archived_visible(self) -> bool:
        return self.show_archived and self.can_view_archived

    def visible(self) -> list[CustomerRecord]:
        rows = [
            c
            for c in self.records
            if (self._archived_visible() or not c.is_archived)
            and (not self.vehicle_type or self.vehicle_type in c.vehicle_types)
            and matches_search(c, self.search)
        ]
        # sorted() is stable in both directions, so ties keep load order.
        return sorted(rows, key=SORT_FIELDS[self.sort.column], reverse=self.sort.direction == DESC)

    # -- select mode --

    def select_all_visible(self) -> None:
        self.selected = {c.id for c in self.visible()}

    def with_selection(self, ids: Iterable[str]) -> "CustomerListView":
        known = {c.id for c in self.records}
        return replace(self, select_mode=True, selected={i for i in ids if i in known})

    def selected_records(self) -> list[CustomerRecord]:
        """Selected records in display order."""
        return [c for c in self.visible() if c.id in self.selected]

    def bulk_actions(self) -> list[str]:
        chosen = self.selected_records()
        if not chosen:
            return []
        actions: list[str] = []
        if any(not c.is_archived for c in chosen):
            actions.append("archive")
        if any(c.is_archived for c in chosen):
            actions.append("unarchive")
        if all(c.is_archived for c in chosen):
            actions.append("delete")
        return actions
