"""FormGateRuntime orchestrator.

This module provides the FormGateRuntime class that coordinates the field
validators, the activation guards and the event system over an in-memory set
of Forms and Templates.

The runtime is the single mutation entry point per entity: every operation
that can invalidate an active record routes through a guard, and when a Form
leaves ``active`` (explicitly, by cascade, or by deletion) every active
Template referencing it is re-checked in the same call.

Usage:
    >>> from formgate.runtime import FormGateRuntime
    >>> runtime = FormGateRuntime()
    >>> form = runtime.create_form("Vendor intake", created_by="user_1")
    >>> form["status"]
    'inactive'
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from formgate.activation import (
    ActivationDecision,
    EditResult,
    FormActivationGuard,
    TemplateActivationGuard,
)
from formgate.config import Settings, get_settings
from formgate.errors import DuplicateNameError, EntityNotFoundError, InvalidNameError
from formgate.events import EventEmitter, StatusEvent, make_event
from formgate.models import Form, Template
from formgate.types import EntityKind, ErrorCode, EventType, NameScope, Status, ValidationMode
from formgate.validation import ValidationResult

logger = logging.getLogger(__name__)


class FormGateRuntime:
    """In-memory orchestrator for Form and Template lifecycles.

    Storage here is a pair of dicts; a persistent deployment keeps the same
    call sequence inside its own per-record transaction.

    Attributes:
        settings: Engine settings
        emitter: Event emitter all guards publish to

    Examples:
        >>> runtime = FormGateRuntime()
        >>> form = runtime.create_form("Intake")
        >>> result = runtime.update_form_fields(form["id"], [
        ...     {"id": "f1", "type": "text", "name": "full_name", "label": "Full name"}
        ... ])
        >>> runtime.set_form_status(form["id"], "active")["accepted"]
        True
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        emitter: Optional[EventEmitter] = None,
    ):
        self.settings = settings or get_settings()
        self.emitter = emitter or EventEmitter()
        self.form_guard = FormActivationGuard(emitter=self.emitter, settings=self.settings)
        self.template_guard = TemplateActivationGuard(emitter=self.emitter)
        self._forms: Dict[str, Form] = {}
        self._templates: Dict[str, Template] = {}
        self._events: List[StatusEvent] = []
        self.emitter.on_any(self._events.append)

    # ------------------------------------------------------------------
    # Forms
    # ------------------------------------------------------------------

    def create_form(
        self,
        form_name: str,
        created_by: Optional[str] = None,
        initiator: Optional[str] = None,
        reviewer: Optional[str] = None,
        approver: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create an inactive form with an empty field list.

        Raises:
            InvalidNameError: If the name is blank or out of bounds
            DuplicateNameError: If the name scope is GLOBAL and the name is taken
        """
        form = Form(
            id=f"form_{uuid.uuid4().hex[:16]}",
            form_name=self._clean_name(form_name),
            created_by=created_by,
            initiator=initiator,
            reviewer=reviewer,
            approver=approver,
        )
        if self.settings.form_name_scope == NameScope.GLOBAL:
            self._raise_on_clash(self.form_guard.check_name(form, self._forms.values()))

        self._forms[form.id] = form
        self._emit(EventType.FORM_CREATED, EntityKind.FORM, form, created_by)
        return form.to_dict()

    def get_form(self, form_id: str) -> Dict[str, Any]:
        return self._form(form_id).to_dict()

    def list_forms(self, status: Optional[Union[Status, str]] = None) -> List[Dict[str, Any]]:
        return [
            form.to_dict()
            for form in self._forms.values()
            if status is None or form.status == status
        ]

    def validate_fields(
        self,
        fields: Iterable[Mapping[str, Any]],
        mode: ValidationMode = ValidationMode.SAVE,
    ) -> ValidationResult:
        """Validate a field list without touching any record."""
        return self.form_guard.validator.validate(list(fields), mode=mode)

    def update_form_fields(
        self,
        form_id: str,
        fields: Iterable[Mapping[str, Any]],
        actor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Replace a form's fields.

        Returns the edit response: the stored form plus ``statusChanged``
        when the edit forced the form back to inactive.

        Raises:
            EntityNotFoundError: If the form does not exist
            UnknownFieldTypeError: If a field type is outside the closed set
        """
        form = self._form(form_id)
        result = self.form_guard.fields_changed(form, fields, actor=actor)
        if result.auto_deactivated:
            self._cascade_form_change(form.id, actor)
        return self._edit_response(form, result)

    def set_form_status(
        self,
        form_id: str,
        status: Union[Status, str],
        actor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Request a form status transition.

        Raises:
            EntityNotFoundError: If the form does not exist
            InvalidStatusError: If the status is unknown
        """
        form = self._form(form_id)
        previous = form.status
        decision = self.form_guard.request_status(
            form, status, other_forms=self._forms.values(), actor=actor
        )
        if previous == Status.ACTIVE and form.status == Status.INACTIVE:
            self._cascade_form_change(form.id, actor)
        return self._decision_response(form, decision)

    def rename_form(self, form_id: str, form_name: str) -> Dict[str, Any]:
        """Rename a form.

        Raises:
            EntityNotFoundError: If the form does not exist
            InvalidNameError: If the name is blank or out of bounds
            DuplicateNameError: If the new name collides under the name scope
        """
        form = self._form(form_id)
        candidate = Form(
            id=form.id,
            form_name=self._clean_name(form_name),
            status=form.status,
        )
        if self.settings.form_name_scope == NameScope.GLOBAL or candidate.is_active:
            self._raise_on_clash(self.form_guard.check_name(candidate, self._forms.values()))

        form.form_name = candidate.form_name
        form.touch()
        return form.to_dict()

    def set_form_roles(
        self,
        form_id: str,
        initiator: Optional[str] = None,
        reviewer: Optional[str] = None,
        approver: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Set the weak user references of a form. Existence is not checked."""
        form = self._form(form_id)
        form.initiator = initiator
        form.reviewer = reviewer
        form.approver = approver
        form.touch()
        return form.to_dict()

    def delete_form(self, form_id: str, actor: Optional[str] = None) -> None:
        """Delete a form and re-check templates that referenced it."""
        form = self._form(form_id)
        del self._forms[form_id]
        self._emit(EventType.FORM_DELETED, EntityKind.FORM, form, actor)
        self._cascade_form_change(form_id, actor)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def create_template(
        self,
        template_name: str,
        forms: Iterable[str] = (),
        approver_template: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create an inactive template.

        Raises:
            InvalidNameError: If the name is blank or out of bounds
            EntityNotFoundError: If a referenced form does not exist
        """
        form_ids = list(forms)
        for form_id in form_ids:
            self._form(form_id)

        template = Template(
            id=f"tpl_{uuid.uuid4().hex[:16]}",
            template_name=self._clean_name(template_name),
            forms=form_ids,
            approver_template=approver_template,
            created_by=created_by,
        )
        self._templates[template.id] = template
        self._emit(EventType.TEMPLATE_CREATED, EntityKind.TEMPLATE, template, created_by)
        return template.to_dict()

    def get_template(self, template_id: str) -> Dict[str, Any]:
        return self._template(template_id).to_dict()

    def update_template_forms(
        self,
        template_id: str,
        forms: Iterable[str],
        actor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Replace a template's form references.

        Raises:
            EntityNotFoundError: If the template or a referenced form does not exist
        """
        template = self._template(template_id)
        form_ids = list(forms)
        for form_id in form_ids:
            self._form(form_id)
        result = self.template_guard.forms_changed(
            template, form_ids, self.form_statuses(), actor=actor
        )
        return self._edit_response(template, result)

    def set_template_approver(
        self,
        template_id: str,
        approver: Optional[str],
        actor: Optional[str] = None,
    ) -> Dict[str, Any]:
        template = self._template(template_id)
        result = self.template_guard.approver_changed(
            template, approver, self.form_statuses(), actor=actor
        )
        return self._edit_response(template, result)

    def set_template_status(
        self,
        template_id: str,
        status: Union[Status, str],
        actor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Request a template status transition."""
        template = self._template(template_id)
        decision = self.template_guard.request_status(
            template,
            status,
            form_statuses=self.form_statuses(),
            other_templates=self._templates.values(),
            actor=actor,
        )
        return self._decision_response(template, decision)

    def rename_template(self, template_id: str, template_name: str) -> Dict[str, Any]:
        """Rename a template.

        Raises:
            DuplicateNameError: If the template is active and another active
                template already uses the name (case-insensitive)
        """
        template = self._template(template_id)
        candidate = Template(
            id=template.id,
            template_name=self._clean_name(template_name),
            status=template.status,
        )
        if candidate.is_active:
            decision = self.template_guard.check(
                candidate, {}, other_templates=self._templates.values()
            )
            self._raise_on_clash(
                [i for i in decision.errors if i.code == ErrorCode.DUPLICATE_ACTIVE_NAME]
            )

        template.template_name = candidate.template_name
        template.touch()
        return template.to_dict()

    def delete_template(self, template_id: str, actor: Optional[str] = None) -> None:
        template = self._template(template_id)
        del self._templates[template_id]
        self._emit(EventType.TEMPLATE_DELETED, EntityKind.TEMPLATE, template, actor)

    def get_template_stats(self, template_id: str) -> Dict[str, Any]:
        return self.template_guard.summarize(self._template(template_id), self.form_statuses())

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def form_statuses(self) -> Dict[str, Status]:
        """Resolved status of every stored form, keyed by id."""
        return {form_id: form.status for form_id, form in self._forms.items()}

    def get_events(
        self,
        entity_id: Optional[str] = None,
        event_type: Optional[EventType] = None,
    ) -> List[StatusEvent]:
        """Events recorded by this runtime, oldest first."""
        return [
            event
            for event in self._events
            if (entity_id is None or event.entity_id == entity_id)
            and (event_type is None or event.type == event_type)
        ]

    def _cascade_form_change(self, form_id: str, actor: Optional[str]) -> None:
        statuses = self.form_statuses()
        for template in self._templates.values():
            if template.is_active and form_id in template.forms:
                result = self.template_guard.form_statuses_changed(template, statuses, actor=actor)
                if result.auto_deactivated:
                    logger.info(
                        "Template %s deactivated because form %s is no longer active",
                        template.id,
                        form_id,
                    )

    def _form(self, form_id: str) -> Form:
        form = self._forms.get(form_id)
        if form is None:
            raise EntityNotFoundError("form", form_id)
        return form

    def _template(self, template_id: str) -> Template:
        template = self._templates.get(template_id)
        if template is None:
            raise EntityNotFoundError("template", template_id)
        return template

    def _clean_name(self, name: str) -> str:
        cleaned = name.strip() if isinstance(name, str) else ""
        low, high = self.settings.min_name_length, self.settings.max_name_length
        if not low <= len(cleaned) <= high:
            raise InvalidNameError(f"Name must be between {low} and {high} characters")
        return cleaned

    @staticmethod
    def _raise_on_clash(issues) -> None:
        if issues:
            raise DuplicateNameError(issues[0])

    def _emit(
        self,
        event_type: EventType,
        kind: EntityKind,
        entity: Union[Form, Template],
        actor: Optional[str],
    ) -> None:
        self.emitter.emit(make_event(event_type, kind, entity.id, entity.status, actor))

    @staticmethod
    def _edit_response(entity: Union[Form, Template], result: EditResult) -> Dict[str, Any]:
        response = result.to_dict()
        response["ok"] = True
        response["record"] = entity.to_dict()
        return response

    @staticmethod
    def _decision_response(
        entity: Union[Form, Template],
        decision: ActivationDecision,
    ) -> Dict[str, Any]:
        response = decision.to_dict()
        response["ok"] = decision.accepted
        response["record"] = entity.to_dict()
        return response


__all__ = [
    "FormGateRuntime",
]
