"""Field definition validation for FormGate.

This module provides the two validators at the heart of the engine:

- ``FieldValidator`` checks one field definition against the rules the
  registry declares for its type and returns a ``FieldResult``.
- ``FieldListValidator`` runs the field validator over an ordered field list,
  threading the ids and names seen so far so that only later duplicates are
  flagged, then applies collection-level checks and returns a
  ``ValidationResult``.

Validation never raises on bad input: every problem becomes an ``Issue`` the
author can fix. Type checks on the ``validations`` object and on per-type
presentation properties are expressed as JSON Schema and evaluated with
jsonschema; its errors are translated into FormGate codes.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from functools import lru_cache
from typing import Any, Collection, Dict, Iterable, List, Mapping, Optional, Set, Union

import jsonschema
from dateutil.parser import isoparse, isoparser
from jsonschema import Draft7Validator

from formgate.config import get_settings
from formgate.errors import Issue
from formgate.registry import (
    DEPENDENCY_CONDITIONS,
    FIELD_TYPE_REGISTRY,
    KNOWN_VALIDATION_KEYS,
    BoundKind,
    FieldTypeRule,
    get_rules,
    is_known_type,
    is_layout_type,
)
from formgate.types import ErrorCode, FieldType, ValidationMode, WarningCode

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")

Bound = Union[int, float, date, datetime, time]


@dataclass(frozen=True)
class FieldResult:
    """Validation outcome for one field definition.

    Attributes:
        field_id: The field's id, or None when it is missing or blank
        index: Position of the field in its list
        field_type: The raw ``type`` value when it is a string
        errors: Blocking issues
        warnings: Advisory issues, never affect validity
    """
    field_id: Optional[str]
    index: int
    field_type: Optional[str] = None
    errors: List[Issue] = field(default_factory=list)
    warnings: List[Issue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def has_error(self, code: ErrorCode) -> bool:
        return any(issue.code == code for issue in self.errors)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "fieldId": self.field_id,
            "index": self.index,
            "type": self.field_type,
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating an ordered field list.

    Attributes:
        field_results: Per-field results keyed by field id. Fields whose id
            is missing or repeated are keyed ``"<id>@<index>"`` so no result
            is dropped.
        collection_errors: Failed collection-level checks (HAS_DATA_FIELD)
        mode: SAVE (lenient) or ACTIVATE (strict)

    Examples:
        >>> result = validate_fields([
        ...     {"id": "f1", "type": "text", "name": "first_name", "label": "First name"}
        ... ])
        >>> result.is_valid
        True
        >>> result.summary["totalFields"]
        1
    """
    field_results: Dict[str, FieldResult]
    collection_errors: List[Issue] = field(default_factory=list)
    mode: ValidationMode = ValidationMode.SAVE

    @property
    def is_valid(self) -> bool:
        """True iff no field has an error and every collection check passes."""
        return not self.collection_errors and all(r.valid for r in self.field_results.values())

    @property
    def blocking(self) -> bool:
        """Whether this result blocks the operation its mode stands for.

        Activation is blocked by any error. Saving is blocked only by field
        types the system cannot reason about.
        """
        if self.mode == ValidationMode.ACTIVATE:
            return not self.is_valid
        return bool(self.unknown_type_field_ids)

    @property
    def has_data_field(self) -> bool:
        return not any(e.code == ErrorCode.HAS_DATA_FIELD for e in self.collection_errors)

    @property
    def errors(self) -> List[Issue]:
        """Every blocking issue, field errors first in list order."""
        issues = [e for r in self.field_results.values() for e in r.errors]
        return issues + list(self.collection_errors)

    @property
    def warnings(self) -> List[Issue]:
        return [w for r in self.field_results.values() for w in r.warnings]

    @property
    def unknown_type_field_ids(self) -> List[str]:
        return [
            key
            for key, r in self.field_results.items()
            if r.has_error(ErrorCode.UNKNOWN_FIELD_TYPE)
        ]

    @property
    def summary(self) -> Dict[str, int]:
        results = self.field_results.values()
        return {
            "totalFields": len(self.field_results),
            "validFields": sum(1 for r in results if r.valid),
            "errorCount": len(self.errors),
            "warningCount": len(self.warnings),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "isValid": self.is_valid,
            "mode": self.mode.value,
            "fieldResults": {key: r.to_dict() for key, r in self.field_results.items()},
            "collectionErrors": [e.to_dict() for e in self.collection_errors],
            "summary": self.summary,
        }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _non_blank(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _field_id(field_def: Mapping[str, Any]) -> Optional[str]:
    value = field_def.get("id")
    return value if _non_blank(value) else None


def _parse_bound(value: Any, kind: BoundKind) -> Bound:
    """Parse a ``min``/``max`` bound into a comparable value.

    Raises:
        ValueError: If a temporal bound is not an ISO 8601 string
    """
    if kind == BoundKind.NUMERIC:
        return value
    if kind == BoundKind.TIME:
        return isoparser().parse_isotime(value)
    # Dates and ISO weeks ("2024-W05") both parse to datetimes
    return isoparse(value)


def _json_path(error: jsonschema.ValidationError) -> str:
    return ".".join(str(p) for p in error.absolute_path)


class FieldValidator:
    """Validates a single field definition against the field type registry.

    The validator is a pure function of its inputs: it reads, but never
    mutates, the sets of ids and names seen earlier in the list.

    Attributes:
        max_grid_size: Upper bound for ``gridSize``

    Examples:
        >>> validator = FieldValidator()
        >>> result = validator.validate({"id": "f1", "type": "select", "name": "color",
        ...                              "label": "Color", "options": []})
        >>> [e.code.value for e in result.errors]
        ['MISSING_OPTIONS']
    """

    def __init__(self, max_grid_size: int = 12) -> None:
        self.max_grid_size = max_grid_size
        self._property_validators: Dict[FieldType, Draft7Validator] = {}
        self._validations_validators: Dict[FieldType, Draft7Validator] = {}
        for field_type, rule in FIELD_TYPE_REGISTRY.items():
            Draft7Validator.check_schema(rule.properties_schema)
            Draft7Validator.check_schema(rule.validations_schema)
            self._property_validators[field_type] = Draft7Validator(rule.properties_schema)
            self._validations_validators[field_type] = Draft7Validator(rule.validations_schema)

    def validate(
        self,
        field_def: Any,
        seen_ids: Collection[str] = frozenset(),
        seen_names: Collection[str] = frozenset(),
        index: int = 0,
    ) -> FieldResult:
        """Validate one field definition.

        Args:
            field_def: The field definition mapping
            seen_ids: Ids of earlier fields in the same list
            seen_names: Names of earlier input fields in the same list
            index: Position of the field in its list

        Returns:
            FieldResult with every error and warning found. Rules are
            evaluated independently, so a field can carry several errors.
        """
        if not isinstance(field_def, Mapping):
            field_def = {}

        field_id = _field_id(field_def)
        raw_type = field_def.get("type")
        errors: List[Issue] = []
        warnings: List[Issue] = []

        def error(code: ErrorCode, message: str, **details: Any) -> None:
            errors.append(Issue(code, message, field_id=field_id, details=details or None))

        def warn(code: WarningCode, message: str, **details: Any) -> None:
            warnings.append(Issue(code, message, field_id=field_id, details=details or None))

        # Checks that do not depend on the type
        if field_id is None:
            error(ErrorCode.MISSING_ID, "Field id is required and must be a non-empty string")
        elif field_id in seen_ids:
            error(ErrorCode.DUPLICATE_ID, f"Duplicate field id: {field_id}")

        grid_size = field_def.get("gridSize")
        if grid_size is not None and not (
            _is_int(grid_size) and 1 <= grid_size <= self.max_grid_size
        ):
            error(
                ErrorCode.INVALID_GRID_SIZE,
                f"Grid size must be an integer between 1 and {self.max_grid_size}",
                received=grid_size,
            )

        if not is_known_type(raw_type):
            error(
                ErrorCode.UNKNOWN_FIELD_TYPE,
                f"Unknown field type: {raw_type!r}",
                received=raw_type,
            )
            return FieldResult(
                field_id=field_id,
                index=index,
                field_type=raw_type if isinstance(raw_type, str) else None,
                errors=errors,
                warnings=warnings,
            )

        rules = get_rules(raw_type)
        type_name = rules.field_type.value

        for err in self._property_validators[rules.field_type].iter_errors(dict(field_def)):
            path = _json_path(err)
            error(
                ErrorCode.INVALID_PROPERTY,
                f"Property '{path}' is invalid for {type_name} fields: {err.message}",
                property=path,
            )

        if rules.is_input_only:
            self._check_input(field_def, rules, seen_names, error, warn)
        else:
            self._check_layout(field_def, rules, warn)

        self._check_options(field_def, rules, error)
        self._check_validations(field_def, rules, error, warn)
        self._check_dependency(field_def, error)

        return FieldResult(
            field_id=field_id,
            index=index,
            field_type=type_name,
            errors=errors,
            warnings=warnings,
        )

    def _check_input(self, field_def, rules: FieldTypeRule, seen_names, error, warn) -> None:
        type_name = rules.field_type.value
        if rules.requires_label and not _non_blank(field_def.get("label")):
            error(ErrorCode.MISSING_LABEL, f"Label is required for {type_name} fields")

        name = field_def.get("name")
        if not _non_blank(name):
            error(ErrorCode.MISSING_NAME, "Field name is required and must be a non-empty string")
        else:
            if not NAME_PATTERN.match(name):
                error(
                    ErrorCode.INVALID_NAME_FORMAT,
                    "Field name must start with a letter and contain only "
                    "letters, numbers, and underscores",
                    received=name,
                )
            if name in seen_names:
                error(ErrorCode.DUPLICATE_NAME, f"Duplicate field name: {name}", name=name)

        if rules.field_type == FieldType.HIDDEN:
            value = field_def.get("value")
            if value is None or value == "":
                warn(WarningCode.HIDDEN_WITHOUT_VALUE, "Hidden field should have a default value")

    def _check_layout(self, field_def, rules: FieldTypeRule, warn) -> None:
        type_name = rules.field_type.value
        if _non_blank(field_def.get("name")):
            warn(
                WarningCode.LAYOUT_FIELD_NAME_IGNORED,
                f"{type_name.capitalize()} elements do not capture data; name is ignored",
            )
        if field_def.get("required") is True:
            warn(
                WarningCode.REQUIRED_IGNORED,
                f"{type_name.capitalize()} elements cannot be required",
            )
        if rules.field_type in (FieldType.HEADER, FieldType.PARAGRAPH) and not _non_blank(
            field_def.get("text")
        ):
            warn(WarningCode.MISSING_TEXT, f"Text content is recommended for {type_name} fields")

    def _check_options(self, field_def, rules: FieldTypeRule, error) -> None:
        type_name = rules.field_type.value
        options = field_def.get("options")

        if not rules.requires_options:
            if options:
                error(
                    ErrorCode.UNEXPECTED_OPTIONS,
                    f"Options are not allowed for {type_name} fields",
                )
            return

        if options is None or (isinstance(options, list) and not options):
            error(
                ErrorCode.MISSING_OPTIONS,
                f"At least one option is required for {type_name} fields",
            )
            return
        if not isinstance(options, list):
            error(ErrorCode.INVALID_OPTIONS, f"Options must be a list for {type_name} fields")
            return

        seen_values: Set[str] = set()
        duplicates: List[Any] = []
        for position, option in enumerate(options, start=1):
            if not isinstance(option, Mapping):
                error(ErrorCode.INVALID_OPTIONS, f"Option {position} must be an object")
                continue
            if not _non_blank(option.get("label")):
                error(ErrorCode.INVALID_OPTIONS, f"Option {position} must have a non-empty label")
            value = option.get("value")
            if value is None or value == "":
                error(ErrorCode.INVALID_OPTIONS, f"Option {position} must have a value")
                continue
            key = repr(value)
            if key in seen_values:
                duplicates.append(value)
            seen_values.add(key)

        if duplicates:
            error(
                ErrorCode.INVALID_OPTIONS,
                "Option values must be unique",
                duplicates=duplicates,
            )

    def _check_validations(self, field_def, rules: FieldTypeRule, error, warn) -> None:
        validations = field_def.get("validations")
        if validations is None:
            return
        if not isinstance(validations, Mapping):
            error(ErrorCode.INVALID_VALIDATION_VALUE, "Validations must be an object")
            return

        type_name = rules.field_type.value
        for key in validations:
            if key not in rules.allowed_validation_keys:
                reason = "is not supported" if key in KNOWN_VALIDATION_KEYS else "is unknown"
                warn(
                    WarningCode.UNSUPPORTED_VALIDATION_KEY,
                    f"Validation '{key}' {reason} for {type_name} fields and is ignored",
                    key=key,
                )
            elif key in rules.deprecated_validation_keys:
                warn(
                    WarningCode.DEPRECATED_VALIDATION_KEY,
                    f"Validation '{key}' is deprecated for {type_name} fields",
                    key=key,
                )

        bad_keys: Set[str] = set()
        schema_errors = self._validations_validators[rules.field_type].iter_errors(
            dict(validations)
        )
        for err in sorted(schema_errors, key=lambda e: [str(p) for p in e.absolute_path]):
            key = str(err.absolute_path[0]) if err.absolute_path else ""
            if key in bad_keys:
                continue
            bad_keys.add(key)
            error(*self._translate_validation_error(key, err), key=key)

        def usable(name: str) -> bool:
            return (
                name in validations
                and name in rules.allowed_validation_keys
                and name not in bad_keys
            )

        # pattern and length bounds are sanity-checked on every type, even
        # where the key is ignored
        pattern = validations.get("pattern")
        if isinstance(pattern, str) and "pattern" not in bad_keys:
            try:
                re.compile(pattern)
            except re.error as exc:
                error(
                    ErrorCode.INVALID_PATTERN,
                    f"Pattern validation must be a valid regular expression: {exc}",
                    key="pattern",
                )

        min_length = validations.get("minLength")
        max_length = validations.get("maxLength")
        if (
            _is_int(min_length)
            and _is_int(max_length)
            and not bad_keys & {"minLength", "maxLength"}
        ):
            if min_length > max_length:
                error(
                    ErrorCode.INVALID_LENGTH_RANGE,
                    "Minimum length cannot be greater than maximum length",
                    minLength=min_length,
                    maxLength=max_length,
                )

        if usable("min") and usable("max"):
            self._check_range(validations["min"], validations["max"], rules, error)

    def _check_range(self, low: Any, high: Any, rules: FieldTypeRule, error) -> None:
        try:
            low_bound = _parse_bound(low, rules.bound_kind)
            high_bound = _parse_bound(high, rules.bound_kind)
        except ValueError:
            error(
                ErrorCode.INVALID_VALIDATION_VALUE,
                f"Min and max must be ISO 8601 {rules.bound_kind.value} values",
                min=low,
                max=high,
            )
            return
        try:
            inverted = low_bound > high_bound
        except TypeError:
            # e.g. a timezone-aware bound against a naive one
            error(
                ErrorCode.INVALID_VALIDATION_VALUE,
                "Min and max cannot be compared",
                min=low,
                max=high,
            )
            return
        if inverted:
            error(
                ErrorCode.INVALID_RANGE,
                "Minimum value cannot be greater than maximum value",
                min=low,
                max=high,
            )

    def _translate_validation_error(self, key: str, err: jsonschema.ValidationError):
        """Map a jsonschema error on ``validations.<key>`` to a code and message."""
        if key == "pattern":
            return ErrorCode.INVALID_PATTERN, "Pattern validation must be a string"
        if key == "fileType":
            return (
                ErrorCode.INVALID_FILE_CONSTRAINT,
                "File type validation must be a non-empty list of MIME types "
                "(e.g. 'image/jpeg')",
            )
        if key == "fileSize":
            return (
                ErrorCode.INVALID_FILE_CONSTRAINT,
                "File size validation must be a positive number of megabytes",
            )
        if err.validator == "type":
            return (
                ErrorCode.INVALID_VALIDATION_VALUE,
                f"Validation '{key}' must be of type {err.validator_value}",
            )
        return ErrorCode.INVALID_VALIDATION_VALUE, f"Validation '{key}' is invalid: {err.message}"

    def _check_dependency(self, field_def, error) -> None:
        depends_on = field_def.get("dependsOn")
        if depends_on is None:
            return
        if not isinstance(depends_on, Mapping):
            error(ErrorCode.INVALID_DEPENDENCY, "Dependency must be an object")
            return

        target = depends_on.get("field")
        condition = depends_on.get("condition", "equals")
        if not _non_blank(target):
            error(
                ErrorCode.INVALID_DEPENDENCY,
                "Dependency field name is required and must be a string",
            )
        elif target == field_def.get("name"):
            error(ErrorCode.INVALID_DEPENDENCY, "A field cannot depend on itself")
        if condition not in DEPENDENCY_CONDITIONS:
            error(
                ErrorCode.INVALID_DEPENDENCY,
                f"Dependency condition must be one of: {', '.join(DEPENDENCY_CONDITIONS)}",
                received=condition,
            )
        elif condition not in ("empty", "not_empty") and "value" not in depends_on:
            error(ErrorCode.INVALID_DEPENDENCY, "Dependency value is required")


class FieldListValidator:
    """Validates an ordered list of field definitions.

    The first occurrence of an id or name is canonical; later occurrences are
    flagged. Collection-level checks run after every field has been seen.

    Examples:
        >>> validator = FieldListValidator()
        >>> result = validator.validate(
        ...     [{"id": "h1", "type": "header", "text": "Intro"}],
        ...     mode=ValidationMode.ACTIVATE,
        ... )
        >>> result.is_valid
        False
        >>> [e.code.value for e in result.collection_errors]
        ['HAS_DATA_FIELD']
    """

    def __init__(self, field_validator: Optional[FieldValidator] = None) -> None:
        self.field_validator = field_validator or FieldValidator()

    def validate(
        self,
        fields: Iterable[Any],
        mode: ValidationMode = ValidationMode.SAVE,
    ) -> ValidationResult:
        """Validate a field list.

        Args:
            fields: Ordered field definitions. Anything that is not a list or
                tuple is treated as an empty list.
            mode: SAVE for lenient authoring, ACTIVATE for the activation gate.
                Both modes report the same issues; only ``blocking`` differs.

        Returns:
            ValidationResult with per-field results and collection errors
        """
        if not isinstance(fields, (list, tuple)):
            fields = []

        seen_ids: Set[str] = set()
        seen_names: Set[str] = set()
        results: Dict[str, FieldResult] = {}
        keyed_fields: List[tuple] = []
        has_data_field = False

        for index, field_def in enumerate(fields):
            result = self.field_validator.validate(field_def, seen_ids, seen_names, index=index)
            key = result.field_id if result.field_id is not None else f"@{index}"
            # an id can itself look like a fallback key
            while key in results:
                key = f"{key}@{index}"
            results[key] = result
            keyed_fields.append((key, field_def))

            if result.field_id is not None:
                seen_ids.add(result.field_id)
            if isinstance(field_def, Mapping) and is_known_type(field_def.get("type")):
                if not is_layout_type(field_def["type"]):
                    has_data_field = True
                    name = field_def.get("name")
                    if _non_blank(name):
                        seen_names.add(name)

        for key, field_def in keyed_fields:
            missing = self._missing_dependency(field_def, seen_names)
            if missing is not None:
                result = results[key]
                issue = Issue(
                    ErrorCode.INVALID_DEPENDENCY,
                    f"Dependent field '{missing}' does not exist",
                    field_id=result.field_id,
                    details={"field": missing},
                )
                results[key] = replace(result, errors=result.errors + [issue])

        collection_errors: List[Issue] = []
        if not has_data_field:
            collection_errors.append(
                Issue(
                    ErrorCode.HAS_DATA_FIELD,
                    "Form must contain at least one input field that captures data",
                )
            )

        validation = ValidationResult(
            field_results=results,
            collection_errors=collection_errors,
            mode=mode,
        )
        logger.debug(
            "Validated %d fields in %s mode: %s",
            len(results),
            mode.value,
            validation.summary,
        )
        return validation

    @staticmethod
    def _missing_dependency(field_def: Any, names: Set[str]) -> Optional[str]:
        if not isinstance(field_def, Mapping) or not is_known_type(field_def.get("type")):
            return None
        depends_on = field_def.get("dependsOn")
        if not isinstance(depends_on, Mapping):
            return None
        target = depends_on.get("field")
        if not _non_blank(target) or target == field_def.get("name") or target in names:
            return None
        return target


@lru_cache
def default_validator() -> FieldListValidator:
    """Process-wide list validator configured from settings."""
    return FieldListValidator(FieldValidator(max_grid_size=get_settings().max_grid_size))


def validate_field(field_def: Any) -> FieldResult:
    """Validate a single field definition in isolation."""
    return default_validator().field_validator.validate(field_def)


def validate_fields(
    fields: Iterable[Any],
    mode: ValidationMode = ValidationMode.SAVE,
) -> ValidationResult:
    """Validate a field list with the default validator."""
    return default_validator().validate(fields, mode=mode)


__all__ = [
    "FieldResult",
    "ValidationResult",
    "FieldValidator",
    "FieldListValidator",
    "NAME_PATTERN",
    "default_validator",
    "validate_field",
    "validate_fields",
]
