"""In-memory dataset store for one editing session.

The persistence core only ever reads a full ``Dataset`` snapshot or replaces
the whole dataset; the CRUD helpers are what editors call between saves.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Protocol

from .envelope import Dataset


class DatasetStore(Protocol):
    def snapshot(self) -> Dataset:
        """Return a deep copy of the current dataset."""
        ...

    def replace_all(self, dataset: Dataset) -> None:
        """Replace the whole dataset."""
        ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _valid_id(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


class SessionStore:
    """Events, hazards and objectives keyed by creation-order integer ids."""

    def __init__(self, dataset: Dataset | None = None) -> None:
        self._items: list[dict[str, Any]] = []
        self._hazards: list[dict[str, Any]] = []
        self._objectives: list[dict[str, Any]] = []
        self._next_item_id = 1
        self._next_hazard_id = 1
        self._next_objective_id = 1
        if dataset is not None:
            self.replace_all(dataset)

    # Bulk -----------------------------------------------------------------
    def snapshot(self) -> Dataset:
        return Dataset(
            items=copy.deepcopy(self._items),
            hazards=copy.deepcopy(self._hazards),
            objectives=copy.deepcopy(self._objectives),
        )

    def replace_all(self, dataset: Dataset) -> None:
        """Load ``dataset`` wholesale.

        Incoming ids are kept when they are positive and unique so references
        between events, hazards and objectives survive a save/open cycle.
        """
        self._hazards = []
        hazard_ids = self._reserve_ids(dataset.hazards)
        for hazard, hazard_id in zip(dataset.hazards, hazard_ids):
            self._hazards.append(
                {"id": hazard_id, "title": str(hazard.get("title") or "Untitled Hazard")}
            )
        self._next_hazard_id = max(hazard_ids, default=0) + 1

        self._objectives = []
        objective_ids = self._reserve_ids(dataset.objectives)
        for objective, objective_id in zip(dataset.objectives, objective_ids):
            self._objectives.append(self._objective_record(objective, objective_id))
        self._next_objective_id = max(objective_ids, default=0) + 1

        self._items = []
        item_ids = self._reserve_ids(dataset.items)
        for item, item_id in zip(dataset.items, item_ids):
            record = copy.deepcopy(item)
            record["id"] = item_id
            self._items.append(record)
        self._next_item_id = max(item_ids, default=0) + 1

    @staticmethod
    def _reserve_ids(records: list[dict[str, Any]]) -> list[int]:
        taken: set[int] = set()
        kept: list[int | None] = []
        for record in records:
            candidate = _valid_id(record.get("id"))
            if candidate is not None and candidate not in taken:
                taken.add(candidate)
                kept.append(candidate)
            else:
                kept.append(None)
        next_id = max(taken, default=0) + 1
        ids: list[int] = []
        for candidate in kept:
            if candidate is None:
                candidate = next_id
                next_id += 1
            ids.append(candidate)
        return ids

    @staticmethod
    def _objective_record(raw: dict[str, Any], objective_id: int) -> dict[str, Any]:
        now = _now_iso()
        record = copy.deepcopy(raw)
        record.update(
            {
                "id": objective_id,
                "title": str(raw.get("title") or "Untitled Objective").strip(),
                "description": raw.get("description") or "",
                "status": raw.get("status") or "Planned",
                "owner": raw.get("owner") or "",
                "color": raw.get("color") or "",
                "createdAt": raw.get("createdAt") or now,
                "updatedAt": raw.get("updatedAt") or now,
            }
        )
        return record

    # Events -----------------------------------------------------------------
    def add_item(self, record: dict[str, Any]) -> int:
        item_id = self._next_item_id
        self._next_item_id += 1
        item = copy.deepcopy(record)
        item["id"] = item_id
        self._items.insert(0, item)
        return item_id

    def put_item(self, record: dict[str, Any]) -> int:
        item_id = _valid_id(record.get("id"))
        if item_id is None:
            return self.add_item(record)
        item = copy.deepcopy(record)
        for index, existing in enumerate(self._items):
            if existing["id"] == item_id:
                self._items[index] = item
                break
        else:
            self._items.insert(0, item)
            self._next_item_id = max(self._next_item_id, item_id + 1)
        return item_id

    def get_item(self, item_id: int) -> dict[str, Any] | None:
        for item in self._items:
            if item["id"] == item_id:
                return copy.deepcopy(item)
        return None

    def delete_item(self, item_id: int) -> None:
        self._items = [item for item in self._items if item["id"] != item_id]

    # Hazards ----------------------------------------------------------------
    def add_hazard(self, title: str) -> int:
        hazard_id = self._next_hazard_id
        self._next_hazard_id += 1
        self._hazards.append({"id": hazard_id, "title": (title or "Untitled Hazard").strip()})
        return hazard_id

    def put_hazard(self, hazard_id: int, title: str) -> None:
        for hazard in self._hazards:
            if hazard["id"] == hazard_id:
                hazard["title"] = (title or "Untitled Hazard").strip()
                return

    def delete_hazard(self, hazard_id: int) -> None:
        """Delete a hazard and detach every event that pointed at it."""
        self._hazards = [hazard for hazard in self._hazards if hazard["id"] != hazard_id]
        for item in self._items:
            if item.get("hazardId") == hazard_id:
                item["hazardId"] = None

    # Objectives -------------------------------------------------------------
    def add_objective(self, record: dict[str, Any]) -> int:
        objective_id = self._next_objective_id
        self._next_objective_id += 1
        now = _now_iso()
        self._objectives.append(
            self._objective_record({**record, "createdAt": now, "updatedAt": now}, objective_id)
        )
        return objective_id

    def put_objective(self, record: dict[str, Any]) -> int:
        objective_id = _valid_id(record.get("id"))
        if objective_id is None:
            return self.add_objective(record)
        for index, existing in enumerate(self._objectives):
            if existing["id"] == objective_id:
                self._objectives[index] = {**existing, **copy.deepcopy(record), "updatedAt": _now_iso()}
                return objective_id
        self._objectives.append(self._objective_record(record, objective_id))
        self._next_objective_id = max(self._next_objective_id, objective_id + 1)
        return objective_id

    def delete_objective(self, objective_id: int) -> None:
        """Delete an objective and unlink mitigations that referenced it."""
        self._objectives = [obj for obj in self._objectives if obj["id"] != objective_id]
        for item in self._items:
            for mitigation in item.get("planMitigations") or []:
                if isinstance(mitigation, dict) and mitigation.get("objectiveId") == objective_id:
                    mitigation["objectiveId"] = None


__all__ = ["DatasetStore", "SessionStore"]
