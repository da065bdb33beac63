"""Structured issue values and exception types for FormGate.

Every problem the engine can report to a caller is an ``Issue``: a frozen
value carrying a machine-readable code, a human-readable message, and
optional context (the offending field id, extra details). Field errors,
warnings, collection-level failures and activation rejections all share
this one shape so a caller can render or retry against them uniformly.

Exceptions are reserved for conditions a caller cannot fix by editing the
payload it is saving: unknown field types, missing records, and name
collisions on rename.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

from typing_extensions import Self

from formgate.types import ErrorCode, WarningCode

IssueCode = Union[ErrorCode, WarningCode]


def _parse_code(code: str) -> IssueCode:
    try:
        return ErrorCode(code)
    except ValueError:
        return WarningCode(code)


@dataclass(frozen=True)
class Issue:
    """A single validation or activation issue.

    Attributes:
        code: Error or warning code
        message: Human-readable description
        field_id: Optional - id of the field definition the issue relates to
        details: Optional - extra context (offending form ids, expected values)

    Examples:
        >>> issue = Issue(
        ...     code=ErrorCode.MISSING_LABEL,
        ...     message="Label is required for text fields",
        ...     field_id="f1",
        ... )
        >>> issue.to_dict()["code"]
        'MISSING_LABEL'
    """
    code: IssueCode
    message: str
    field_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
        }
        if self.field_id is not None:
            result["fieldId"] = self.field_id
        if self.details is not None:
            result["details"] = self.details
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Self:
        """Create Issue from dict."""
        code = data["code"]
        if isinstance(code, str):
            code = _parse_code(code)
        return cls(
            code=code,
            message=data["message"],
            field_id=data.get("fieldId"),
            details=data.get("details"),
        )


class FormGateError(Exception):
    """Base class for all FormGate exceptions."""


class UnknownFieldTypeError(FormGateError):
    """Raised when a field type is outside the closed set.

    Raised by the registry on lookup, and by save paths when a field list
    contains a type the system cannot render or reason about.

    Attributes:
        type_name: The offending type value
        field_ids: Ids of the fields carrying unknown types (save paths only)
    """

    def __init__(self, type_name: Any, field_ids: Optional[Iterable[str]] = None):
        self.type_name = type_name
        self.field_ids: List[str] = list(field_ids or [])
        message = f"Unknown field type: {type_name!r}"
        if self.field_ids:
            message += f" (fields: {', '.join(self.field_ids)})"
        super().__init__(message)


class EntityNotFoundError(FormGateError, LookupError):
    """Raised when a Form or Template id does not resolve to a record."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} {entity_id} not found")


class DuplicateNameError(FormGateError):
    """Raised when a rename or create would collide with an existing name.

    Attributes:
        issue: The collision issue (DUPLICATE_ACTIVE_NAME or DUPLICATE_FORM_NAME)
    """

    def __init__(self, issue: Issue):
        self.issue = issue
        super().__init__(issue.message)


class InvalidNameError(FormGateError, ValueError):
    """Raised when a Form or Template name is blank or out of bounds."""


class InvalidStatusError(FormGateError, ValueError):
    """Raised when a status value is not one of the known statuses."""


__all__ = [
    "Issue",
    "IssueCode",
    "FormGateError",
    "UnknownFieldTypeError",
    "EntityNotFoundError",
    "DuplicateNameError",
    "InvalidNameError",
    "InvalidStatusError",
]
