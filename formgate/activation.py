"""Activation guards for Forms and Templates.

Both entities move between two states, ``inactive`` and ``active``. The
guards in this module are the only code that changes a record's status:

- An explicit ``request_status`` either transitions the record or returns a
  rejected ``ActivationDecision`` listing every cause, leaving the status
  untouched.
- Every mutating operation (fields, forms, approver) goes through a guard
  method that writes the change and, when a previously active record no
  longer satisfies its activation conditions, force-transitions it back to
  ``inactive``. That cascading deactivation is not an error: it is logged,
  emitted as an ``*.auto_deactivated`` event and reported through
  ``EditResult.status_changed``.

The guards do no locking and no I/O. Callers serialise read, decide and
write per record, and supply already-resolved form statuses to the
Template guard.

Usage:
    >>> from formgate.activation import FormActivationGuard
    >>> from formgate.models import Form
    >>> from formgate.types import Status
    >>> guard = FormActivationGuard()
    >>> form = Form(id="form_1", form_name="Intake")
    >>> guard.fields_changed(form, [
    ...     {"id": "f1", "type": "text", "name": "full_name", "label": "Full name"}
    ... ]).status_changed
    False
    >>> guard.request_status(form, Status.ACTIVE).accepted
    True
"""

import copy
from dataclasses import dataclass, field
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from formgate.config import Settings, get_settings
from formgate.errors import Issue, UnknownFieldTypeError
from formgate.events import EventEmitter, make_event
from formgate.models import Form, Template, coerce_status, name_key
from formgate.types import EntityKind, ErrorCode, EventType, NameScope, Status, ValidationMode
from formgate.validation import FieldListValidator, FieldValidator, ValidationResult

logger = logging.getLogger(__name__)

FormStatuses = Mapping[str, Union[Status, str]]


@dataclass(frozen=True)
class ActivationDecision:
    """Outcome of an activation request or eligibility check.

    Attributes:
        accepted: Whether the transition was (or would be) allowed
        status: Record status after the request
        error_code: Primary failure code; None when accepted
        errors: Every cause of the rejection, so all can be fixed in one pass
        validation: Optional - the strict field validation behind a Form decision
    """
    accepted: bool
    status: Status
    error_code: Optional[ErrorCode] = None
    errors: List[Issue] = field(default_factory=list)
    validation: Optional[ValidationResult] = None

    @property
    def error_codes(self) -> List[ErrorCode]:
        codes: List[ErrorCode] = []
        for issue in self.errors:
            if issue.code not in codes:
                codes.append(issue.code)
        return codes

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "accepted": self.accepted,
            "status": self.status.value,
            "errorCode": self.error_code.value if self.error_code else None,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.validation is not None:
            result["summary"] = self.validation.summary
        return result


@dataclass(frozen=True)
class EditResult:
    """Outcome of a successful mutation.

    Attributes:
        status: Record status after the edit
        previous_status: Record status before the edit
        validation: Optional - field validation of the new field list (Forms)
        reasons: Issues that caused a cascading deactivation, if any
    """
    status: Status
    previous_status: Status
    validation: Optional[ValidationResult] = None
    reasons: List[Issue] = field(default_factory=list)

    @property
    def status_changed(self) -> bool:
        return self.status != self.previous_status

    @property
    def auto_deactivated(self) -> bool:
        return self.status_changed and self.status == Status.INACTIVE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "accepted": True,
            "status": self.status.value,
            "previousStatus": self.previous_status.value,
            "statusChanged": self.status_changed,
        }
        if self.reasons:
            result["reasons"] = [r.to_dict() for r in self.reasons]
        if self.validation is not None:
            result["validation"] = self.validation.to_dict()
            result["warnings"] = [w.to_dict() for w in self.validation.warnings]
        return result


def _non_blank(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


class _StatusGuard:
    entity_kind: EntityKind

    def __init__(self, emitter: Optional[EventEmitter] = None) -> None:
        self.emitter = emitter

    def _emit(
        self,
        event_type: EventType,
        entity: Union[Form, Template],
        actor: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self.emitter is None:
            return
        self.emitter.emit(
            make_event(event_type, self.entity_kind, entity.id, entity.status, actor, payload)
        )


class FormActivationGuard(_StatusGuard):
    """State machine over a Form's status.

    Attributes:
        settings: Engine settings (form-name uniqueness scope, grid size)
        validator: Field list validator used for both modes
        emitter: Optional - receives a StatusEvent for every change
    """

    entity_kind = EntityKind.FORM

    def __init__(
        self,
        validator: Optional[FieldListValidator] = None,
        emitter: Optional[EventEmitter] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        super().__init__(emitter)
        self.settings = settings or get_settings()
        self.validator = validator or FieldListValidator(
            FieldValidator(max_grid_size=self.settings.max_grid_size)
        )

    def check_name(self, form: Form, others: Iterable[Form]) -> List[Issue]:
        """Name collisions for ``form`` under the configured scope.

        In ACTIVE scope only active forms are compared; the caller decides
        whether ``form`` is, or is about to become, active.
        """
        scope = self.settings.form_name_scope
        if scope == NameScope.NONE:
            return []

        key = name_key(form.form_name)
        clashes = [
            other.id
            for other in others
            if other.id != form.id
            and name_key(other.form_name) == key
            and (scope == NameScope.GLOBAL or other.is_active)
        ]
        if not clashes:
            return []
        if scope == NameScope.GLOBAL:
            return [Issue(
                ErrorCode.DUPLICATE_FORM_NAME,
                f"A form named '{form.form_name}' already exists",
                details={"formIds": clashes},
            )]
        return [Issue(
            ErrorCode.DUPLICATE_ACTIVE_NAME,
            f"An active form named '{form.form_name}' already exists",
            details={"formIds": clashes},
        )]

    def check(self, form: Form, other_forms: Iterable[Form] = ()) -> ActivationDecision:
        """Decide whether ``form`` may be active, without changing it."""
        validation = self.validator.validate(form.fields, mode=ValidationMode.ACTIVATE)
        errors: List[Issue] = []
        error_code: Optional[ErrorCode] = None

        if not validation.is_valid:
            error_code = ErrorCode.INVALID_FIELDS
            errors.extend(validation.errors)

        name_issues = self.check_name(form, other_forms)
        if name_issues:
            error_code = error_code or name_issues[0].code
            errors.extend(name_issues)

        return ActivationDecision(
            accepted=error_code is None,
            status=form.status,
            error_code=error_code,
            errors=errors,
            validation=validation,
        )

    def request_status(
        self,
        form: Form,
        target: Union[Status, str],
        other_forms: Iterable[Form] = (),
        actor: Optional[str] = None,
    ) -> ActivationDecision:
        """Request a status transition.

        Deactivation always succeeds. Activation runs strict field validation
        and the name check; on failure the status is unchanged and the
        decision lists every underlying issue.

        Raises:
            InvalidStatusError: If ``target`` is not a known status
        """
        target = coerce_status(target)
        previous = form.status

        if target == Status.INACTIVE:
            form.status = Status.INACTIVE
            if previous != Status.INACTIVE:
                form.touch()
                logger.info("Form %s deactivated", form.id)
                self._emit(EventType.FORM_DEACTIVATED, form, actor, {"fromStatus": previous.value})
            return ActivationDecision(accepted=True, status=form.status)

        decision = self.check(form, other_forms)
        if not decision.accepted:
            logger.warning(
                "Activation of form %s rejected: %s",
                form.id,
                ", ".join(code.value for code in decision.error_codes),
            )
            self._emit(
                EventType.FORM_ACTIVATION_REJECTED,
                form,
                actor,
                {
                    "errorCode": decision.error_code.value,
                    "errorCodes": [code.value for code in decision.error_codes],
                },
            )
            return decision

        form.status = Status.ACTIVE
        if previous != Status.ACTIVE:
            form.touch()
            logger.info("Form %s activated", form.id)
            self._emit(EventType.FORM_ACTIVATED, form, actor, {"fromStatus": previous.value})
        return ActivationDecision(
            accepted=True,
            status=form.status,
            validation=decision.validation,
        )

    def fields_changed(
        self,
        form: Form,
        new_fields: Optional[Iterable[Mapping[str, Any]]],
        actor: Optional[str] = None,
    ) -> EditResult:
        """Replace the field list of ``form``.

        Saving is lenient: fields with errors are stored so authors can
        iterate. If the form was active and the new list does not pass strict
        validation (an empty list included), the form is forced back to
        inactive as part of the same update.

        Raises:
            UnknownFieldTypeError: If any field has a type outside the closed
                set; the record is left untouched.
        """
        new_fields = copy.deepcopy(list(new_fields or []))
        mode = ValidationMode.ACTIVATE if form.is_active else ValidationMode.SAVE
        validation = self.validator.validate(new_fields, mode=mode)

        unknown = validation.unknown_type_field_ids
        if unknown:
            first = validation.field_results[unknown[0]]
            logger.warning("Rejected field update for form %s: unknown field types in %s",
                           form.id, unknown)
            raise UnknownFieldTypeError(first.field_type, field_ids=unknown)

        previous = form.status
        form.fields = new_fields
        form.touch()
        self._emit(EventType.FORM_FIELDS_UPDATED, form, actor, {"summary": validation.summary})

        reasons: List[Issue] = []
        if previous == Status.ACTIVE and not validation.is_valid:
            reasons = validation.errors
            form.status = Status.INACTIVE
            logger.info(
                "Form %s auto-deactivated after field update: %s",
                form.id,
                ", ".join(sorted({r.code.value for r in reasons})),
            )
            self._emit(
                EventType.FORM_AUTO_DEACTIVATED,
                form,
                actor,
                {"reasons": [r.code.value for r in reasons]},
            )

        return EditResult(
            status=form.status,
            previous_status=previous,
            validation=validation,
            reasons=reasons,
        )


class TemplateActivationGuard(_StatusGuard):
    """State machine over a Template's status.

    Form statuses are consumed as already computed by the Form guard; this
    guard never validates form fields itself. Form ids missing from the
    supplied statuses count as inactive.
    """

    entity_kind = EntityKind.TEMPLATE

    def _condition_issues(self, template: Template, form_statuses: FormStatuses) -> List[Issue]:
        issues: List[Issue] = []

        form_ids = list(dict.fromkeys(template.forms))
        if not form_ids:
            issues.append(Issue(
                ErrorCode.NO_ACTIVE_FORMS,
                "Template must have at least one form to be activated",
                details={"formIds": [], "formCount": 0, "activeFormCount": 0},
            ))
        else:
            offending = [fid for fid in form_ids if form_statuses.get(fid) != Status.ACTIVE]
            if offending:
                issues.append(Issue(
                    ErrorCode.NO_ACTIVE_FORMS,
                    "Every form in the template must be active: "
                    f"{', '.join(offending)} not active",
                    details={
                        "formIds": offending,
                        "formCount": len(form_ids),
                        "activeFormCount": len(form_ids) - len(offending),
                    },
                ))

        if not _non_blank(template.approver_template):
            issues.append(Issue(
                ErrorCode.NO_APPROVER,
                "Template must have an approver to be activated",
            ))
        return issues

    def _name_issues(self, template: Template, others: Iterable[Template]) -> List[Issue]:
        key = name_key(template.template_name)
        clashes = [
            other.id
            for other in others
            if other.id != template.id
            and other.is_active
            and name_key(other.template_name) == key
        ]
        if not clashes:
            return []
        return [Issue(
            ErrorCode.DUPLICATE_ACTIVE_NAME,
            f"An active template named '{template.template_name}' already exists",
            details={"templateIds": clashes},
        )]

    def check(
        self,
        template: Template,
        form_statuses: FormStatuses,
        other_templates: Iterable[Template] = (),
    ) -> ActivationDecision:
        """Decide whether ``template`` may be active, without changing it.

        Failures are collected, not short-circuited.
        """
        errors = self._condition_issues(template, form_statuses)
        errors.extend(self._name_issues(template, other_templates))
        return ActivationDecision(
            accepted=not errors,
            status=template.status,
            error_code=errors[0].code if errors else None,
            errors=errors,
        )

    def request_status(
        self,
        template: Template,
        target: Union[Status, str],
        form_statuses: Optional[FormStatuses] = None,
        other_templates: Iterable[Template] = (),
        actor: Optional[str] = None,
    ) -> ActivationDecision:
        """Request a status transition.

        Raises:
            InvalidStatusError: If ``target`` is not a known status
        """
        target = coerce_status(target)
        previous = template.status

        if target == Status.INACTIVE:
            template.status = Status.INACTIVE
            if previous != Status.INACTIVE:
                template.touch()
                logger.info("Template %s deactivated", template.id)
                self._emit(EventType.TEMPLATE_DEACTIVATED, template, actor,
                           {"fromStatus": previous.value})
            return ActivationDecision(accepted=True, status=template.status)

        decision = self.check(template, form_statuses or {}, other_templates)
        if not decision.accepted:
            logger.warning(
                "Activation of template %s rejected: %s",
                template.id,
                ", ".join(code.value for code in decision.error_codes),
            )
            self._emit(
                EventType.TEMPLATE_ACTIVATION_REJECTED,
                template,
                actor,
                {
                    "errorCode": decision.error_code.value,
                    "errorCodes": [code.value for code in decision.error_codes],
                },
            )
            return decision

        template.status = Status.ACTIVE
        if previous != Status.ACTIVE:
            template.touch()
            logger.info("Template %s activated", template.id)
            self._emit(EventType.TEMPLATE_ACTIVATED, template, actor, {"fromStatus": previous.value})
        return ActivationDecision(accepted=True, status=template.status)

    def forms_changed(
        self,
        template: Template,
        new_forms: Iterable[str],
        form_statuses: FormStatuses,
        actor: Optional[str] = None,
    ) -> EditResult:
        """Replace the form references of ``template``."""
        previous = template.status
        template.forms = list(new_forms)
        template.touch()
        self._emit(EventType.TEMPLATE_UPDATED, template, actor, {"forms": list(template.forms)})
        return self._recheck(template, previous, form_statuses, actor)

    def approver_changed(
        self,
        template: Template,
        approver: Optional[str],
        form_statuses: FormStatuses,
        actor: Optional[str] = None,
    ) -> EditResult:
        """Replace the approver of ``template``."""
        previous = template.status
        template.approver_template = approver
        template.touch()
        self._emit(EventType.TEMPLATE_UPDATED, template, actor, {"approverTemplate": approver})
        return self._recheck(template, previous, form_statuses, actor)

    def form_statuses_changed(
        self,
        template: Template,
        form_statuses: FormStatuses,
        actor: Optional[str] = None,
    ) -> EditResult:
        """Re-evaluate ``template`` after a referenced form changed status."""
        return self._recheck(template, template.status, form_statuses, actor)

    def _recheck(
        self,
        template: Template,
        previous: Status,
        form_statuses: FormStatuses,
        actor: Optional[str],
    ) -> EditResult:
        reasons: List[Issue] = []
        if template.is_active:
            reasons = self._condition_issues(template, form_statuses)
            if reasons:
                template.status = Status.INACTIVE
                template.touch()
                logger.info(
                    "Template %s auto-deactivated: %s",
                    template.id,
                    ", ".join(r.code.value for r in reasons),
                )
                self._emit(
                    EventType.TEMPLATE_AUTO_DEACTIVATED,
                    template,
                    actor,
                    {"reasons": [r.code.value for r in reasons]},
                )
        return EditResult(status=template.status, previous_status=previous, reasons=reasons)

    def summarize(self, template: Template, form_statuses: FormStatuses) -> Dict[str, Any]:
        """Activation statistics for ``template``."""
        form_ids = list(dict.fromkeys(template.forms))
        issues = self._condition_issues(template, form_statuses)
        return {
            "formCount": len(form_ids),
            "activeFormCount": sum(
                1 for fid in form_ids if form_statuses.get(fid) == Status.ACTIVE
            ),
            "hasApprover": _non_blank(template.approver_template),
            "canBeActivated": not issues,
            "validationErrors": [i.to_dict() for i in issues],
            "status": template.status.value,
        }


__all__ = [
    "ActivationDecision",
    "EditResult",
    "FormActivationGuard",
    "TemplateActivationGuard",
]
