# forms/dialogs.py

import logging
from dataclasses import asdict, dataclass, field
from typing import Awaitable, Callable, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from stores.base import ActionResult
from .schemas import ClientForm, ServiceForm, StaffForm, field_errors

logger = logging.getLogger(__name__)

SubmitHandler = Callable[[BaseModel], Awaitable[ActionResult]]


@dataclass
class DialogOutcome:
    submitted: bool
    errors: Dict[str, str] = field(default_factory=dict)
    result: Optional[ActionResult] = None

    @property
    def success(self) -> bool:
        return bool(self.result and self.result.success)


def parse_form_text(text: str) -> Dict[str, str]:
    """Reads ``key: value`` lines sent back by the user.

    Keys are matched case-insensitively against the form labels; unknown
    lines are ignored.
    """
    values = {}
    for line in (text or '').splitlines():
        if ':' not in line:
            continue
        key, value = line.split(':', 1)
        key = key.strip().lower().replace(' ', '_')
        if key:
            values[key] = value.strip()
    return values


def render_form_text(values: Dict[str, object]) -> str:
    lines = []
    for key, value in values.items():
        if value is None:
            value = ''
        elif isinstance(value, bool):
            value = 'yes' if value else 'no'
        lines.append(f"{key}: {value}")
    return "\n".join(lines)


class EntityDialog:
    """One create/edit form bound to a store operation.

    Edit mode is chosen by passing ``record``; create mode uses ``defaults``.
    """

    schema: Type[BaseModel]
    defaults: Dict[str, object] = {}
    edit_fields: tuple = ()
    hidden_in_edit: tuple = ()

    def __init__(self, on_submit: SubmitHandler, record=None):
        self.on_submit = on_submit
        self.record = record
        self.submitting = False

    @property
    def is_edit(self) -> bool:
        return self.record is not None

    def initial_values(self) -> Dict[str, object]:
        if not self.is_edit:
            return dict(self.defaults)
        data = asdict(self.record)
        values = {}
        for name in self.edit_fields:
            if name in self.hidden_in_edit:
                continue
            value = data.get(name)
            values[name] = '' if value is None else value
        return values

    def template(self) -> str:
        return render_form_text(self.initial_values())

    def validate(self, values: Dict[str, object]):
        merged = self.initial_values()
        if self.is_edit:
            # Edit forms keep fields the user is not allowed to change
            merged.update({k: v for k, v in values.items() if k not in self.hidden_in_edit})
            merged.update(self._locked_values())
        else:
            merged.update(values)
        try:
            return self.schema.model_validate(merged), {}
        except ValidationError as e:
            return None, field_errors(e)

    def _locked_values(self) -> Dict[str, object]:
        data = asdict(self.record)
        return {name: data.get(name) for name in self.hidden_in_edit}

    async def submit(self, values: Dict[str, object]) -> DialogOutcome:
        if self.submitting:
            logger.info(f"{type(self).__name__}: submission already in flight, ignored.")
            return DialogOutcome(submitted=False)

        form, errors = self.validate(values)
        if errors:
            return DialogOutcome(submitted=False, errors=errors)

        self.submitting = True
        try:
            result = await self.on_submit(form)
        finally:
            self.submitting = False
        return DialogOutcome(submitted=True, result=result)


class ServiceDialog(EntityDialog):
    schema = ServiceForm
    defaults = {
        'name': '',
        'description': '',
        'duration': 30,
        'price': 0,
        'category': 'General',
        'is_active': True,
    }
    edit_fields = ('name', 'description', 'duration', 'price', 'category', 'is_active')


class StaffDialog(EntityDialog):
    schema = StaffForm
    defaults = {
        'name': '',
        'email': '',
        'phone': '',
        'title': 'Specialist',
        'bio': '',
        'is_active': True,
        'password': '',
    }
    edit_fields = ('name', 'email', 'phone', 'title', 'bio', 'is_active', 'avatar_url')
    # Email is the login identity once created; the avatar is managed outside the chat
    hidden_in_edit = ('email', 'avatar_url')


class ClientDialog(EntityDialog):
    schema = ClientForm
    defaults = {
        'name': '',
        'email': '',
        'phone': '',
        'date_of_birth': '',
        'notes': '',
        'password': '',
    }
    edit_fields = ('name', 'email', 'phone', 'date_of_birth', 'notes')
    hidden_in_edit = ('email',)
