from __future__ import annotations

import uuid
from datetime import datetime
from typing import Mapping

from ..errors import NotFound, PermissionDenied, ValidationError
from ..logging import get_logger
from ..models import WEEKDAYS, Principal
from .query_cache import QueryCache
from .schedule_service import parse_clock
from .store_service import Join, Order, TableStore

logger = get_logger(__name__)

STATS_KEY = "dashboard-stats"


class EntryRepository:
    """List/create/delete for one owned table.

    Listings are joined with the owner's profile name (``author_name``) and
    cached under ``query_key``; every successful mutation invalidates that key.
    """

    table: str = ""
    owner_column: str = ""
    query_key: str = ""
    noun: str = "entry"
    plural: str = "entries"
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    order: tuple[Order, ...] = (Order("created_at", descending=True, cast="datetime"),)
    missing_message = "Please fill in all required fields."

    def __init__(self, store: TableStore, cache: QueryCache):
        self.store = store
        self.cache = cache

    @property
    def join(self) -> Join:
        return Join("profiles", local_key=self.owner_column, columns={"full_name": "author_name"})

    def fetch(self) -> list[dict]:
        return self.store.select(self.table, order=self.order, join=self.join)

    def list(self) -> list[dict]:
        return self.cache.get_or_fetch(self.query_key, self.fetch)

    def count(self) -> int:
        return self.store.count(self.table)

    def clean(self, fields: Mapping[str, object]) -> dict:
        data = {k: str(fields.get(k) or "").strip() for k in self.required + self.optional}
        missing = [k for k in self.required if not data[k]]
        if missing:
            raise ValidationError(self.missing_message, field=missing[0])
        if "link" in data and not data["link"].lower().startswith(("http://", "https://")):
            raise ValidationError("Please enter a valid link starting with http:// or https://.", field="link")
        for k in self.optional:
            data[k] = data[k] or None
        return data

    def _require_faculty(self, principal: Principal, action: str) -> None:
        if not principal.is_faculty:
            logger.warning(f"{self.noun}_{action}_refused", user_id=principal.id, role=principal.role.value)
            raise PermissionDenied(f"Only faculty can {action} {self.plural}.")

    def create(self, fields: Mapping[str, object], principal: Principal) -> dict:
        self._require_faculty(principal, "add")
        row = self.clean(fields)
        row.update(
            {
                "id": uuid.uuid4().hex,
                self.owner_column: principal.id,
                "created_at": datetime.utcnow().isoformat(timespec="seconds"),
            }
        )
        self.store.insert(self.table, row, acting_id=principal.id)
        self.cache.invalidate(self.query_key, STATS_KEY)
        logger.info(f"{self.noun}_created", id=row["id"], user_id=principal.id)
        return row

    def delete(self, entry_id: str, principal: Principal) -> None:
        self._require_faculty(principal, "delete")
        row = next((r for r in self.list() if str(r.get("id")) == str(entry_id)), None)
        if row is None:
            raise NotFound(f"That {self.noun} no longer exists.")
        if not principal.owns(row, self.owner_column):
            logger.warning(f"{self.noun}_delete_refused", id=entry_id, user_id=principal.id)
            raise PermissionDenied(f"You can only delete {self.plural} you added.")
        self.store.delete(self.table, {"id": entry_id}, acting_id=principal.id)
        self.cache.invalidate(self.query_key, STATS_KEY)
        logger.info(f"{self.noun}_deleted", id=entry_id, user_id=principal.id)


class ResourceRepository(EntryRepository):
    table = "resources"
    owner_column = "uploaded_by"
    query_key = "resources"
    noun = "resource"
    plural = "resources"
    required = ("title", "link")
    optional = ("description",)


class ScholarshipRepository(EntryRepository):
    table = "scholarships"
    owner_column = "added_by"
    query_key = "scholarships"
    noun = "scholarship"
    plural = "scholarships"
    required = ("name", "description", "link")


class TimetableRepository(EntryRepository):
    table = "timetable"
    owner_column = "faculty_id"
    query_key = "timetable"
    noun = "class"
    plural = "classes"
    required = ("day", "start_time", "end_time", "subject")
    order = (
        Order("day", rank=WEEKDAYS),
        Order("start_time", cast="time"),
    )
    missing_message = "Please fill in all fields."

    def clean(self, fields: Mapping[str, object]) -> dict:
        data = super().clean(fields)
        if data["day"] not in WEEKDAYS:
            raise ValidationError("Please choose a day of the week.", field="day")
        data["start_time"] = str(parse_clock(data["start_time"], "start_time"))
        data["end_time"] = str(parse_clock(data["end_time"], "end_time"))
        return data


def dashboard_stats(store: TableStore, cache: QueryCache) -> dict[str, int]:
    def _fetch() -> list[dict]:
        repos = (ResourceRepository, TimetableRepository, ScholarshipRepository)
        return [{repo.table: repo(store, cache).count() for repo in repos}]

    return cache.get_or_fetch(STATS_KEY, _fetch)[0]
