# stores/base.py

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from forms.schemas import field_errors

logger = logging.getLogger(__name__)

T = TypeVar('T')

# notify(level, text); level is "success" or "error"
Notifier = Callable[[str, str], Awaitable[None]]


async def _silent(level: str, text: str) -> None:
    return None


@dataclass
class ActionResult:
    success: bool
    error: Optional[str] = None
    data: Optional[object] = None


def describe_error(exc: BaseException, fallback: str) -> str:
    """Human readable message for a failed remote call."""
    message = getattr(exc, 'message', None)
    if message:
        return str(message)
    return str(exc) or fallback


class LookupTable(Generic[T]):
    """id -> display value map with a fixed answer for missing keys."""

    def __init__(self, rows: Iterable[dict], value: Callable[[dict], T], missing: T):
        self._values: Dict[str, T] = {row['id']: value(row) for row in rows}
        self.missing = missing

    def get(self, key: Optional[str]) -> T:
        if key is None:
            return self.missing
        return self._values.get(key, self.missing)

    def __contains__(self, key) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)


class EntityStore(Generic[T]):
    """Local list of one table's rows plus the create/update/delete calls.

    Every operation reports through ``notify`` and returns an ActionResult;
    remote failures are never raised to the caller.
    """

    table: str
    label: str  # plural, for messages
    singular: str
    order: str = 'name'
    order_desc: bool = False
    form_schema: Optional[type] = None

    def __init__(self, db, notify: Optional[Notifier] = None):
        self.db = db
        self.notify = notify or _silent
        self.items: List[T] = []
        self.loading = True

    def from_row(self, row: dict) -> T:
        raise NotImplementedError

    def to_insert(self, form: BaseModel) -> dict:
        return form.model_dump(mode='json')

    def to_update(self, form: BaseModel) -> dict:
        return self.to_insert(form)

    def get(self, record_id: str) -> Optional[T]:
        for item in self.items:
            if item.id == record_id:
                return item
        return None

    async def load(self) -> List[T]:
        try:
            rows = await self.db.fetch_all(self.table, order=self.order, desc=self.order_desc)
            self.items = [self.from_row(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching {self.table}: {describe_error(e, 'unknown error')}")
            await self.notify('error', f"Failed to load {self.label}")
        finally:
            self.loading = False
        return self.items

    async def create(self, form) -> ActionResult:
        form, invalid = await self._validated(form)
        if invalid:
            return invalid
        try:
            row = await self.db.insert(self.table, self.to_insert(form))
        except Exception as e:
            return await self._failed(e, f"Failed to create {self.singular}")
        item = self.from_row(row)
        self.items = self.items + [item]
        await self.notify('success', f"{self.singular.capitalize()} created successfully")
        return ActionResult(True, data=item)

    async def update(self, record_id: str, form) -> ActionResult:
        form, invalid = await self._validated(form)
        if invalid:
            return invalid
        try:
            row = await self.db.update(self.table, record_id, self.to_update(form))
        except Exception as e:
            return await self._failed(e, f"Failed to update {self.singular}")
        item = self.from_row(row)
        self.items = [item if existing.id == record_id else existing for existing in self.items]
        await self.notify('success', f"{self.singular.capitalize()} updated successfully")
        return ActionResult(True, data=item)

    async def delete(self, record_id: str) -> ActionResult:
        try:
            await self.db.delete(self.table, record_id)
        except Exception as e:
            return await self._failed(e, f"Failed to delete {self.singular}")
        self.items = [item for item in self.items if item.id != record_id]
        await self.notify('success', f"{self.singular.capitalize()} deleted successfully")
        return ActionResult(True)

    async def _failed(self, exc: Exception, fallback: str) -> ActionResult:
        message = describe_error(exc, fallback)
        logger.error(f"{fallback}: {message}")
        await self.notify('error', message)
        return ActionResult(False, error=message)

    async def _validated(self, form):
        """Accepts a validated form or raw field values."""
        if isinstance(form, BaseModel) or self.form_schema is None:
            return form, None
        try:
            return self.form_schema.model_validate(form), None
        except ValidationError as e:
            errors = field_errors(e)
            message = "; ".join(f"{name}: {text}" for name, text in errors.items())
            await self.notify('error', message)
            return None, ActionResult(False, error=message, data=errors)
