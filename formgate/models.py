"""Form and Template records.

Records are plain mutable dataclasses that mirror the flat documents owned
by the storage layer. They carry no behaviour beyond serialization: every
status change goes through the activation guards in ``formgate.activation``.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dateutil.parser import isoparse
from typing_extensions import Self

from formgate.errors import InvalidStatusError
from formgate.types import Status


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value is None:
        return _utcnow()
    return isoparse(value)


def coerce_status(value: Any) -> Status:
    """Convert a status string to Status.

    Raises:
        InvalidStatusError: If the value is not a known status
    """
    if isinstance(value, Status):
        return value
    try:
        return Status(value)
    except ValueError:
        raise InvalidStatusError(
            f"Invalid status {value!r}. Valid statuses are: "
            f"{', '.join(s.value for s in Status)}"
        ) from None


def name_key(name: str) -> str:
    """Comparison key for case-insensitive name uniqueness."""
    return name.strip().casefold()


def _form_ref(value: Any) -> str:
    if not isinstance(value, dict):
        return value
    form_id = value.get("formId") or value.get("id")
    if not form_id:
        raise ValueError(f"Embedded form document has no formId: {value!r}")
    return form_id


@dataclass
class Form:
    """A named, ordered list of field definitions.

    Attributes:
        id: Unique identifier
        form_name: Display name
        fields: Ordered field definition mappings
        status: INACTIVE on creation; changed only by the Form Activation Guard
        initiator: Optional - user id of the initiator (weak reference)
        reviewer: Optional - user id of the reviewer (weak reference)
        approver: Optional - user id of the approver (weak reference)
        created_by: Optional - user id of the author

    Examples:
        >>> form = Form(id="form_1", form_name="Vendor intake")
        >>> form.status
        <Status.INACTIVE: 'inactive'>
        >>> form.fields
        []
    """
    id: str
    form_name: str
    fields: List[Dict[str, Any]] = field(default_factory=list)
    status: Status = Status.INACTIVE
    initiator: Optional[str] = None
    reviewer: Optional[str] = None
    approver: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        self.status = coerce_status(self.status)

    @property
    def is_active(self) -> bool:
        return self.status == Status.ACTIVE

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a flat camelCase document."""
        return {
            "id": self.id,
            "formName": self.form_name,
            "fields": copy.deepcopy(self.fields),
            "status": self.status.value,
            "initiator": self.initiator,
            "reviewer": self.reviewer,
            "approver": self.approver,
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Self:
        """Deserialize from a flat camelCase document."""
        return cls(
            id=data["id"],
            form_name=data["formName"],
            fields=copy.deepcopy(list(data.get("fields") or [])),
            status=data.get("status", Status.INACTIVE),
            initiator=data.get("initiator"),
            reviewer=data.get("reviewer"),
            approver=data.get("approver"),
            created_by=data.get("createdBy"),
            created_at=_parse_ts(data.get("createdAt")),
            updated_at=_parse_ts(data.get("updatedAt")),
        )


@dataclass
class Template:
    """A named package of Forms plus an approver.

    Attributes:
        id: Unique identifier
        template_name: Display name, unique (case-insensitive) among active templates
        forms: Ordered ids of the referenced forms
        approver_template: User id of the approver, required for activation
        status: INACTIVE on creation; changed only by the Template Activation Guard
        created_by: Optional - user id of the author
    """
    id: str
    template_name: str
    forms: List[str] = field(default_factory=list)
    approver_template: Optional[str] = None
    status: Status = Status.INACTIVE
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        self.status = coerce_status(self.status)

    @property
    def is_active(self) -> bool:
        return self.status == Status.ACTIVE

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a flat camelCase document."""
        return {
            "id": self.id,
            "templateName": self.template_name,
            "forms": list(self.forms),
            "approverTemplate": self.approver_template,
            "status": self.status.value,
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Self:
        """Deserialize from a flat camelCase document.

        ``forms`` may hold plain ids or embedded form documents carrying a
        ``formId`` (or ``id``) key.

        Raises:
            ValueError: If an embedded form document carries no id
        """
        forms = [_form_ref(f) for f in data.get("forms") or []]
        return cls(
            id=data["id"],
            template_name=data["templateName"],
            forms=forms,
            approver_template=data.get("approverTemplate"),
            status=data.get("status", Status.INACTIVE),
            created_by=data.get("createdBy"),
            created_at=_parse_ts(data.get("createdAt")),
            updated_at=_parse_ts(data.get("updatedAt")),
        )


__all__ = [
    "Form",
    "Template",
    "coerce_status",
    "name_key",
]
