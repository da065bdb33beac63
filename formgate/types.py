"""Core type definitions for the FormGate engine.

This module defines the fundamental types used throughout FormGate:
- FieldType: The closed set of field definition variants
- FieldCategory: Input (data-capturing) vs layout (presentational) fields
- Status: Activation status shared by Forms and Templates
- ValidationMode: Lenient save-time vs strict activation-time validation
- ErrorCode / WarningCode: Machine-readable issue codes surfaced to callers
- EventType / EntityKind: Audit event classification
- NameScope: Where Form names must be unique

These types form the contract between callers and the FormGate engine.
"""

from enum import Enum


class FieldType(str, Enum):
    """Field definition variants.

    The set is closed: any other ``type`` value is rejected with
    ``UNKNOWN_FIELD_TYPE``.
    """
    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    PASSWORD = "password"
    URL = "url"
    TEL = "tel"
    DATE = "date"
    TIME = "time"
    WEEK = "week"
    NUMBER = "number"
    SELECT = "select"
    MULTISELECT = "multiselect"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    SWITCH = "switch"
    RATING = "rating"
    COLOR = "color"
    HIDDEN = "hidden"
    FILE = "file"
    HEADER = "header"
    PARAGRAPH = "paragraph"
    DIVIDER = "divider"
    SPACER = "spacer"
    STEP = "step"


class FieldCategory(str, Enum):
    """Semantic category of a field.

    Input fields carry a ``name`` and capture data. Layout fields only
    structure the rendered form and are ignored by data-capture checks.
    """
    INPUT = "input"
    LAYOUT = "layout"


class Status(str, Enum):
    """Activation status of a Form or Template."""
    INACTIVE = "inactive"
    ACTIVE = "active"


class ValidationMode(str, Enum):
    """How a field list validation result is used.

    SAVE: lenient, errors are reported but only unknown types block.
    ACTIVATE: strict, any error blocks the activation transition.
    """
    SAVE = "save"
    ACTIVATE = "activate"


class ErrorCode(str, Enum):
    """Blocking issue codes.

    Field-level codes are recoverable by editing the field, collection-level
    codes by adding or removing fields, activation codes by fixing the
    referenced entities.
    """
    # Field level
    UNKNOWN_FIELD_TYPE = "UNKNOWN_FIELD_TYPE"
    MISSING_ID = "MISSING_ID"
    DUPLICATE_ID = "DUPLICATE_ID"
    MISSING_LABEL = "MISSING_LABEL"
    MISSING_NAME = "MISSING_NAME"
    INVALID_NAME_FORMAT = "INVALID_NAME_FORMAT"
    DUPLICATE_NAME = "DUPLICATE_NAME"
    INVALID_GRID_SIZE = "INVALID_GRID_SIZE"
    MISSING_OPTIONS = "MISSING_OPTIONS"
    INVALID_OPTIONS = "INVALID_OPTIONS"
    UNEXPECTED_OPTIONS = "UNEXPECTED_OPTIONS"
    INVALID_RANGE = "INVALID_RANGE"
    INVALID_LENGTH_RANGE = "INVALID_LENGTH_RANGE"
    INVALID_PATTERN = "INVALID_PATTERN"
    INVALID_FILE_CONSTRAINT = "INVALID_FILE_CONSTRAINT"
    INVALID_VALIDATION_VALUE = "INVALID_VALIDATION_VALUE"
    INVALID_PROPERTY = "INVALID_PROPERTY"
    INVALID_DEPENDENCY = "INVALID_DEPENDENCY"

    # Collection level (reported when the check fails)
    HAS_DATA_FIELD = "HAS_DATA_FIELD"

    # Activation level
    INVALID_FIELDS = "INVALID_FIELDS"
    NO_ACTIVE_FORMS = "NO_ACTIVE_FORMS"
    NO_APPROVER = "NO_APPROVER"
    DUPLICATE_ACTIVE_NAME = "DUPLICATE_ACTIVE_NAME"
    DUPLICATE_FORM_NAME = "DUPLICATE_FORM_NAME"


class WarningCode(str, Enum):
    """Advisory issue codes. Warnings never affect validity."""
    DEPRECATED_VALIDATION_KEY = "DEPRECATED_VALIDATION_KEY"
    UNSUPPORTED_VALIDATION_KEY = "UNSUPPORTED_VALIDATION_KEY"
    LAYOUT_FIELD_NAME_IGNORED = "LAYOUT_FIELD_NAME_IGNORED"
    REQUIRED_IGNORED = "REQUIRED_IGNORED"
    HIDDEN_WITHOUT_VALUE = "HIDDEN_WITHOUT_VALUE"
    MISSING_TEXT = "MISSING_TEXT"


class EntityKind(str, Enum):
    """Kind of record an event relates to."""
    FORM = "form"
    TEMPLATE = "template"


class EventType(str, Enum):
    """Audit event types.

    Every status transition, rejected activation and record mutation emits
    a typed event.
    """
    FORM_CREATED = "form.created"
    FORM_FIELDS_UPDATED = "form.fields_updated"
    FORM_ACTIVATED = "form.activated"
    FORM_DEACTIVATED = "form.deactivated"
    FORM_AUTO_DEACTIVATED = "form.auto_deactivated"
    FORM_ACTIVATION_REJECTED = "form.activation_rejected"
    FORM_DELETED = "form.deleted"
    TEMPLATE_CREATED = "template.created"
    TEMPLATE_UPDATED = "template.updated"
    TEMPLATE_ACTIVATED = "template.activated"
    TEMPLATE_DEACTIVATED = "template.deactivated"
    TEMPLATE_AUTO_DEACTIVATED = "template.auto_deactivated"
    TEMPLATE_ACTIVATION_REJECTED = "template.activation_rejected"
    TEMPLATE_DELETED = "template.deleted"


class NameScope(str, Enum):
    """Scope in which a Form name must be unique (case-insensitive).

    ACTIVE: only among active forms, checked on activation and rename.
    GLOBAL: among all forms at all times.
    NONE: names are never compared.
    """
    ACTIVE = "active"
    GLOBAL = "global"
    NONE = "none"


__all__ = [
    "FieldType",
    "FieldCategory",
    "Status",
    "ValidationMode",
    "ErrorCode",
    "WarningCode",
    "EntityKind",
    "EventType",
    "NameScope",
]
