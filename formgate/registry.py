"""Field type registry for FormGate.

One immutable rule table, built at import time, describes every field type
in the closed set: whether it needs a label or an option list, which
validation keys it understands, whether it captures data, and a JSON Schema
for its type-specific presentation properties.

Validators dispatch on the ``type`` tag through ``get_rules`` instead of
inspecting the shape of a field definition.

Usage:
    >>> from formgate.registry import get_rules
    >>> rules = get_rules("select")
    >>> rules.requires_options
    True
    >>> rules.is_input_only
    True
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from formgate.errors import UnknownFieldTypeError
from formgate.types import FieldCategory, FieldType


class BoundKind(str, Enum):
    """How ``min``/``max`` validation bounds of a type are compared."""
    NONE = "none"
    NUMERIC = "numeric"
    DATE = "date"
    TIME = "time"
    WEEK = "week"


MAX_LABEL_LENGTH = 100
MAX_PLACEHOLDER_LENGTH = 200
MAX_HELPER_TEXT_LENGTH = 500
MAX_TEXT_LENGTH = 1000

MIME_TYPE_PATTERN = r"^[^/\s]+/[^/\s]+$"

DEPENDENCY_CONDITIONS = ("equals", "not_equals", "contains", "not_empty", "empty")

# Properties every field may carry. ``label`` is only length-checked here;
# presence is a separate MISSING_LABEL rule.
COMMON_PROPERTIES: Dict[str, Any] = {
    "label": {"maxLength": MAX_LABEL_LENGTH},
    "placeholder": {"type": "string", "maxLength": MAX_PLACEHOLDER_LENGTH},
    "helperText": {"type": "string", "maxLength": MAX_HELPER_TEXT_LENGTH},
    "required": {"type": "boolean"},
}

TYPE_PROPERTIES: Dict[FieldType, Dict[str, Any]] = {
    FieldType.TEXTAREA: {
        "rows": {"type": "integer", "minimum": 1, "maximum": 20},
    },
    FieldType.RATING: {
        "max": {"type": "integer", "minimum": 1, "maximum": 10},
    },
    FieldType.FILE: {
        "multiple": {"type": "boolean"},
    },
    FieldType.HEADER: {
        "text": {"type": "string", "maxLength": MAX_TEXT_LENGTH},
        "variant": {"enum": ["h1", "h2", "h3", "h4", "h5", "h6"]},
        "align": {"enum": ["left", "center", "right"]},
    },
    FieldType.PARAGRAPH: {
        "text": {"type": "string", "maxLength": MAX_TEXT_LENGTH},
        "align": {"enum": ["left", "center", "right", "justify"]},
    },
    FieldType.SPACER: {
        "height": {"type": "integer", "minimum": 1, "maximum": 200},
    },
    FieldType.STEP: {
        "title": {"type": "string", "maxLength": 100},
        "description": {"type": "string", "maxLength": 500},
    },
}

# JSON Schema for each validation key's value. ``min``/``max`` depend on the
# type's bound kind and are resolved in _validation_value_schema.
VALIDATION_VALUE_SCHEMAS: Dict[str, Any] = {
    "required": {"type": "boolean"},
    "email": {"type": "boolean"},
    "url": {"type": "boolean"},
    "minLength": {"type": "integer", "minimum": 0},
    "maxLength": {"type": "integer", "minimum": 0},
    "pattern": {"type": "string"},
    "fileType": {
        "type": "array",
        "minItems": 1,
        "items": {"type": "string", "pattern": MIME_TYPE_PATTERN},
    },
    "fileSize": {"type": "number", "exclusiveMinimum": 0},
}

KNOWN_VALIDATION_KEYS: FrozenSet[str] = frozenset(VALIDATION_VALUE_SCHEMAS) | {"min", "max"}


@dataclass(frozen=True)
class FieldTypeRule:
    """Structural rules for one field type.

    Attributes:
        field_type: The type these rules apply to
        category: INPUT for data-capturing types, LAYOUT otherwise
        requires_label: Whether an empty label is a MISSING_LABEL error
        requires_options: Whether a non-empty option list is mandatory
        allowed_validation_keys: Keys of ``validations`` meaningful for the type
        deprecated_validation_keys: Allowed keys that produce a warning
        bound_kind: How ``min``/``max`` bounds are compared
        properties_schema: JSON Schema for the field's presentation properties
        validations_schema: JSON Schema for the field's ``validations`` object
    """
    field_type: FieldType
    category: FieldCategory
    requires_label: bool
    requires_options: bool = False
    allowed_validation_keys: FrozenSet[str] = frozenset()
    deprecated_validation_keys: FrozenSet[str] = frozenset()
    bound_kind: BoundKind = BoundKind.NONE
    properties_schema: Dict[str, Any] = field(default_factory=dict, compare=False)
    validations_schema: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_layout_only(self) -> bool:
        return self.category == FieldCategory.LAYOUT

    @property
    def is_input_only(self) -> bool:
        return self.category == FieldCategory.INPUT

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "type": self.field_type.value,
            "category": self.category.value,
            "requiresLabel": self.requires_label,
            "requiresOptions": self.requires_options,
            "allowedValidationKeys": sorted(self.allowed_validation_keys),
            "deprecatedValidationKeys": sorted(self.deprecated_validation_keys),
            "isLayoutOnly": self.is_layout_only,
            "isInputOnly": self.is_input_only,
        }


def _validation_value_schema(key: str, bound_kind: BoundKind) -> Dict[str, Any]:
    if key in ("min", "max"):
        if bound_kind == BoundKind.NUMERIC:
            return {"type": "number"}
        return {"type": "string", "minLength": 1}
    return VALIDATION_VALUE_SCHEMAS[key]


def _rule(
    field_type: FieldType,
    category: FieldCategory = FieldCategory.INPUT,
    requires_label: bool = True,
    requires_options: bool = False,
    validation_keys: Iterable[str] = (),
    deprecated: Iterable[str] = (),
    bound_kind: BoundKind = BoundKind.NONE,
) -> FieldTypeRule:
    allowed = frozenset(validation_keys)
    properties = dict(COMMON_PROPERTIES)
    properties.update(TYPE_PROPERTIES.get(field_type, {}))
    return FieldTypeRule(
        field_type=field_type,
        category=category,
        requires_label=requires_label,
        requires_options=requires_options,
        allowed_validation_keys=allowed,
        deprecated_validation_keys=frozenset(deprecated) & allowed,
        bound_kind=bound_kind,
        properties_schema={"type": "object", "properties": properties},
        validations_schema={
            "type": "object",
            "properties": {
                key: _validation_value_schema(key, bound_kind) for key in sorted(allowed)
            },
        },
    )


_TEXT_KEYS = ("required", "minLength", "maxLength", "pattern")
_BOUND_KEYS = ("required", "min", "max")


def _build_registry() -> Mapping[FieldType, FieldTypeRule]:
    rules: List[FieldTypeRule] = [
        _rule(FieldType.TEXT, validation_keys=_TEXT_KEYS, deprecated=["required"]),
        _rule(FieldType.TEXTAREA, validation_keys=_TEXT_KEYS, deprecated=["required"]),
        _rule(FieldType.PASSWORD, validation_keys=_TEXT_KEYS, deprecated=["required"]),
        _rule(FieldType.TEL, validation_keys=_TEXT_KEYS, deprecated=["required"]),
        _rule(
            FieldType.EMAIL,
            validation_keys=("required", "minLength", "maxLength", "email"),
            deprecated=["required", "email"],
        ),
        _rule(
            FieldType.URL,
            validation_keys=("required", "minLength", "maxLength", "url"),
            deprecated=["required", "url"],
        ),
        _rule(FieldType.DATE, validation_keys=_BOUND_KEYS, deprecated=["required"],
              bound_kind=BoundKind.DATE),
        _rule(FieldType.TIME, validation_keys=_BOUND_KEYS, deprecated=["required"],
              bound_kind=BoundKind.TIME),
        _rule(FieldType.WEEK, validation_keys=_BOUND_KEYS, deprecated=["required"],
              bound_kind=BoundKind.WEEK),
        _rule(FieldType.NUMBER, validation_keys=_BOUND_KEYS, deprecated=["required"],
              bound_kind=BoundKind.NUMERIC),
        _rule(FieldType.RATING, validation_keys=_BOUND_KEYS, deprecated=["required"],
              bound_kind=BoundKind.NUMERIC),
        _rule(FieldType.SELECT, requires_options=True, validation_keys=["required"],
              deprecated=["required"]),
        _rule(FieldType.RADIO, requires_options=True, validation_keys=["required"],
              deprecated=["required"]),
        # min/max bound the number of selected options
        _rule(FieldType.MULTISELECT, requires_options=True, validation_keys=_BOUND_KEYS,
              deprecated=["required"], bound_kind=BoundKind.NUMERIC),
        _rule(FieldType.CHECKBOX, validation_keys=["required"], deprecated=["required"]),
        _rule(FieldType.SWITCH, validation_keys=["required"], deprecated=["required"]),
        _rule(FieldType.COLOR, validation_keys=["required"], deprecated=["required"]),
        _rule(FieldType.HIDDEN, requires_label=False),
        _rule(
            FieldType.FILE,
            validation_keys=("required", "fileType", "fileSize"),
            deprecated=["required"],
        ),
    ]
    for layout_type in (
        FieldType.HEADER,
        FieldType.PARAGRAPH,
        FieldType.DIVIDER,
        FieldType.SPACER,
        FieldType.STEP,
    ):
        rules.append(_rule(layout_type, category=FieldCategory.LAYOUT, requires_label=False))

    return MappingProxyType({rule.field_type: rule for rule in rules})


FIELD_TYPE_REGISTRY: Mapping[FieldType, FieldTypeRule] = _build_registry()


def _coerce_type(type_name: Any) -> Optional[FieldType]:
    if isinstance(type_name, FieldType):
        return type_name
    if not isinstance(type_name, str):
        return None
    try:
        return FieldType(type_name)
    except ValueError:
        return None


def get_rules(type_name: Any) -> FieldTypeRule:
    """Return the rule set for a field type.

    Args:
        type_name: A type string (e.g. "text") or FieldType member

    Returns:
        The FieldTypeRule for the type

    Raises:
        UnknownFieldTypeError: If the type is not in the closed set

    Examples:
        >>> get_rules("header").is_layout_only
        True
        >>> get_rules("marquee")
        Traceback (most recent call last):
        ...
        formgate.errors.UnknownFieldTypeError: Unknown field type: 'marquee'
    """
    field_type = _coerce_type(type_name)
    if field_type is None:
        raise UnknownFieldTypeError(type_name)
    return FIELD_TYPE_REGISTRY[field_type]


def is_known_type(type_name: Any) -> bool:
    return _coerce_type(type_name) is not None


def is_layout_type(type_name: Any) -> bool:
    field_type = _coerce_type(type_name)
    return field_type is not None and FIELD_TYPE_REGISTRY[field_type].is_layout_only


def known_types() -> List[str]:
    """Return every type name in registry order."""
    return [field_type.value for field_type in FIELD_TYPE_REGISTRY]


__all__ = [
    "BoundKind",
    "FieldTypeRule",
    "FIELD_TYPE_REGISTRY",
    "KNOWN_VALIDATION_KEYS",
    "DEPENDENCY_CONDITIONS",
    "MAX_LABEL_LENGTH",
    "get_rules",
    "is_known_type",
    "is_layout_type",
    "known_types",
]
