"""FormGate field schema validation and activation consistency engine.

FormGate provides:
- A closed registry of field types with per-type structural rules
- Field and field-list validation with structured, per-field issues
- Activation guards that decide when a Form or Template may go live
- Cascading deactivation when edits invalidate an active record
- An audit event stream for every status change

Basic usage:
    >>> from formgate import validate_fields
    >>> result = validate_fields([
    ...     {"id": "f1", "type": "email", "name": "email", "label": "Email"}
    ... ])
    >>> result.is_valid
    True
"""

__version__ = "0.1.0"
__author__ = "FormGate Team"

# Version info
VERSION = (0, 1, 0)

# Core exports
from formgate.activation import FormActivationGuard, TemplateActivationGuard
from formgate.runtime import FormGateRuntime
from formgate.validation import validate_field, validate_fields

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "FormActivationGuard",
    "TemplateActivationGuard",
    "FormGateRuntime",
    "validate_field",
    "validate_fields",
]
