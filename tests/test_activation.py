"""Unit tests for the Form and Template activation guards.

Tests cover:
- Form activation: strict validation, name uniqueness scopes
- Form field edits: lenient saves, cascading deactivation, unknown types
- Template activation: active forms, approver, name uniqueness
- Template edits and form status changes re-checking active templates
- Emitted events for every transition
"""

import pytest

from formgate.activation import (
    ActivationDecision,
    EditResult,
    FormActivationGuard,
    TemplateActivationGuard,
)
from formgate.config import Settings
from formgate.errors import InvalidStatusError, UnknownFieldTypeError
from formgate.events import EventEmitter
from formgate.models import Form, Template
from formgate.types import ErrorCode, EventType, NameScope, Status


VALID_FIELDS = [
    {"id": "f1", "type": "text", "name": "full_name", "label": "Full name"},
    {"id": "f2", "type": "email", "name": "email", "label": "Email"},
]


@pytest.fixture
def events():
    return []


@pytest.fixture
def emitter(events):
    emitter = EventEmitter()
    emitter.on_any(events.append)
    return emitter


@pytest.fixture
def form_guard(emitter):
    return FormActivationGuard(emitter=emitter, settings=Settings())


@pytest.fixture
def template_guard(emitter):
    return TemplateActivationGuard(emitter=emitter)


def make_form(form_id="form_1", name="Vendor intake", fields=None, status=Status.INACTIVE):
    return Form(
        id=form_id,
        form_name=name,
        fields=list(VALID_FIELDS if fields is None else fields),
        status=status,
    )


def make_template(template_id="tpl_1", name="Onboarding", forms=("form_1",),
                  approver="user_9", status=Status.INACTIVE):
    return Template(
        id=template_id,
        template_name=name,
        forms=list(forms),
        approver_template=approver,
        status=status,
    )


class TestFormActivation:
    """Test explicit Form status requests."""

    def test_activate_valid_form(self, form_guard, events):
        """Should activate a form whose fields pass strict validation."""
        form = make_form()
        decision = form_guard.request_status(form, Status.ACTIVE, actor="user_1")

        assert isinstance(decision, ActivationDecision)
        assert decision.accepted is True
        assert decision.error_code is None
        assert form.status == Status.ACTIVE
        assert [e.type for e in events] == [EventType.FORM_ACTIVATED]
        assert events[0].actor == "user_1"
        assert events[0].payload == {"fromStatus": "inactive"}

    def test_accepts_status_strings(self, form_guard):
        form = make_form()
        assert form_guard.request_status(form, "active").accepted is True
        assert form.status == Status.ACTIVE

    def test_reject_layout_only_form(self, form_guard, events):
        """A form with no data-capturing field cannot go live."""
        form = make_form(fields=[{"id": "h1", "type": "header", "text": "Hello"}])
        decision = form_guard.request_status(form, Status.ACTIVE)

        assert decision.accepted is False
        assert decision.error_code == ErrorCode.INVALID_FIELDS
        assert ErrorCode.HAS_DATA_FIELD in decision.error_codes
        assert form.status == Status.INACTIVE
        assert [e.type for e in events] == [EventType.FORM_ACTIVATION_REJECTED]
        assert events[0].payload["errorCodes"] == ["HAS_DATA_FIELD"]

    def test_reject_empty_form(self, form_guard):
        decision = form_guard.request_status(make_form(fields=[]), Status.ACTIVE)
        assert decision.accepted is False
        assert decision.error_codes == [ErrorCode.HAS_DATA_FIELD]

    def test_rejection_lists_every_issue(self, form_guard):
        """All underlying field issues are returned at once."""
        form = make_form(fields=[
            {"id": "f1", "type": "text", "name": "a"},
            {"id": "f2", "type": "select", "name": "b", "label": "B"},
        ])
        decision = form_guard.request_status(form, Status.ACTIVE)
        assert decision.error_codes == [ErrorCode.MISSING_LABEL, ErrorCode.MISSING_OPTIONS]
        assert decision.to_dict()["summary"]["validFields"] == 0

    def test_warnings_do_not_block(self, form_guard):
        form = make_form(fields=[
            {"id": "f1", "type": "text", "name": "a", "label": "A",
             "validations": {"required": True}},
        ])
        assert form_guard.request_status(form, Status.ACTIVE).accepted is True

    def test_deactivate_always_succeeds(self, form_guard, events):
        form = make_form(fields=[], status=Status.ACTIVE)
        decision = form_guard.request_status(form, Status.INACTIVE)
        assert decision.accepted is True
        assert form.status == Status.INACTIVE
        assert [e.type for e in events] == [EventType.FORM_DEACTIVATED]

    def test_deactivate_inactive_form_is_silent(self, form_guard, events):
        form = make_form()
        assert form_guard.request_status(form, Status.INACTIVE).accepted is True
        assert events == []

    def test_reactivating_active_form_emits_nothing(self, form_guard, events):
        form = make_form(status=Status.ACTIVE)
        assert form_guard.request_status(form, Status.ACTIVE).accepted is True
        assert events == []

    def test_invalid_status(self, form_guard):
        with pytest.raises(InvalidStatusError):
            form_guard.request_status(make_form(), "published")

    def test_check_does_not_mutate(self, form_guard, events):
        form = make_form(fields=[])
        decision = form_guard.check(form)
        assert decision.accepted is False
        assert decision.status == Status.INACTIVE
        assert form.status == Status.INACTIVE
        assert events == []


class TestFormNameScope:
    """Test form-name uniqueness under each configured scope."""

    def test_active_scope_rejects_clash_with_active_form(self, form_guard):
        other = make_form("form_2", name="vendor INTAKE", status=Status.ACTIVE)
        decision = form_guard.request_status(make_form(), Status.ACTIVE, other_forms=[other])
        assert decision.accepted is False
        assert decision.error_code == ErrorCode.DUPLICATE_ACTIVE_NAME
        assert decision.errors[0].details == {"formIds": ["form_2"]}

    def test_active_scope_ignores_inactive_forms(self, form_guard):
        other = make_form("form_2", name="Vendor intake")
        assert form_guard.request_status(make_form(), Status.ACTIVE, [other]).accepted is True

    def test_invalid_fields_take_precedence(self, form_guard):
        """The primary code is INVALID_FIELDS when both checks fail."""
        other = make_form("form_2", status=Status.ACTIVE)
        decision = form_guard.request_status(make_form(fields=[]), Status.ACTIVE, [other])
        assert decision.error_code == ErrorCode.INVALID_FIELDS
        assert decision.error_codes == [ErrorCode.HAS_DATA_FIELD, ErrorCode.DUPLICATE_ACTIVE_NAME]

    def test_global_scope(self, emitter):
        guard = FormActivationGuard(emitter=emitter,
                                    settings=Settings(form_name_scope=NameScope.GLOBAL))
        other = make_form("form_2")
        issues = guard.check_name(make_form(), [other])
        assert [i.code for i in issues] == [ErrorCode.DUPLICATE_FORM_NAME]

    def test_no_scope(self, emitter):
        guard = FormActivationGuard(emitter=emitter,
                                    settings=Settings(form_name_scope=NameScope.NONE))
        other = make_form("form_2", status=Status.ACTIVE)
        assert guard.request_status(make_form(), Status.ACTIVE, [other]).accepted is True

    def test_form_never_clashes_with_itself(self, form_guard):
        form = make_form(status=Status.ACTIVE)
        assert form_guard.check_name(form, [form]) == []


class TestFormFieldEdits:
    """Test field list replacement and cascading deactivation."""

    def test_lenient_save_on_inactive_form(self, form_guard, events):
        """Inactive forms may store fields with errors."""
        form = make_form(fields=[])
        bad = [{"id": "f1", "type": "select", "name": "pick", "label": "Pick"}]
        result = form_guard.fields_changed(form, bad)

        assert isinstance(result, EditResult)
        assert result.status_changed is False
        assert result.validation.is_valid is False
        assert form.fields == bad
        assert [e.type for e in events] == [EventType.FORM_FIELDS_UPDATED]

    def test_stored_fields_are_copies(self, form_guard):
        field = {"id": "f1", "type": "text", "name": "a", "label": "A"}
        form = make_form(fields=[])
        form_guard.fields_changed(form, [field])
        field["label"] = ""
        assert form.fields[0]["label"] == "A"

    def test_nested_values_are_not_shared(self, form_guard):
        """Mutating nested options after a save cannot bypass the guard."""
        select = {"id": "f1", "type": "select", "name": "pick", "label": "Pick",
                  "options": [{"label": "A", "value": "a"}]}
        form = make_form(fields=[])
        form_guard.fields_changed(form, [select])
        assert form_guard.request_status(form, Status.ACTIVE).accepted is True

        select["options"].clear()
        form.to_dict()["fields"][0]["options"].clear()

        assert form.fields[0]["options"] == [{"label": "A", "value": "a"}]
        assert form_guard.check(form).accepted is True

    def test_valid_edit_keeps_form_active(self, form_guard):
        form = make_form(status=Status.ACTIVE)
        result = form_guard.fields_changed(form, VALID_FIELDS[:1])
        assert result.status == Status.ACTIVE
        assert result.status_changed is False
        assert result.reasons == []

    def test_invalidating_edit_deactivates(self, form_guard, events):
        """An active form whose new fields fail is forced inactive."""
        form = make_form(status=Status.ACTIVE)
        result = form_guard.fields_changed(form, [{"id": "d1", "type": "divider"}], actor="u1")

        assert result.status == Status.INACTIVE
        assert result.previous_status == Status.ACTIVE
        assert result.status_changed is True
        assert result.auto_deactivated is True
        assert [r.code for r in result.reasons] == [ErrorCode.HAS_DATA_FIELD]
        assert form.status == Status.INACTIVE
        assert form.fields == [{"id": "d1", "type": "divider"}]
        assert [e.type for e in events] == [
            EventType.FORM_FIELDS_UPDATED,
            EventType.FORM_AUTO_DEACTIVATED,
        ]
        assert events[1].payload == {"reasons": ["HAS_DATA_FIELD"]}

    def test_emptying_fields_deactivates(self, form_guard):
        form = make_form(status=Status.ACTIVE)
        result = form_guard.fields_changed(form, None)
        assert result.auto_deactivated is True
        assert form.fields == []

    def test_edit_response_shape(self, form_guard):
        form = make_form(status=Status.ACTIVE)
        data = form_guard.fields_changed(form, []).to_dict()
        assert data["accepted"] is True
        assert data["statusChanged"] is True
        assert data["previousStatus"] == "active"
        assert data["status"] == "inactive"
        assert data["reasons"][0]["code"] == "HAS_DATA_FIELD"

    def test_unknown_type_rejects_save(self, form_guard, events):
        """Unknown types block the save and leave the record untouched."""
        form = make_form(status=Status.ACTIVE)
        before = list(form.fields)
        with pytest.raises(UnknownFieldTypeError) as exc_info:
            form_guard.fields_changed(form, VALID_FIELDS + [{"id": "x", "type": "marquee"}])

        assert exc_info.value.type_name == "marquee"
        assert exc_info.value.field_ids == ["x"]
        assert form.fields == before
        assert form.status == Status.ACTIVE
        assert events == []


class TestTemplateActivation:
    """Test explicit Template status requests."""

    def test_activate_when_all_conditions_hold(self, template_guard, events):
        template = make_template()
        decision = template_guard.request_status(
            template, Status.ACTIVE, form_statuses={"form_1": Status.ACTIVE}
        )
        assert decision.accepted is True
        assert template.status == Status.ACTIVE
        assert [e.type for e in events] == [EventType.TEMPLATE_ACTIVATED]

    def test_status_strings_in_form_statuses(self, template_guard):
        template = make_template()
        decision = template_guard.request_status(template, "active", {"form_1": "active"})
        assert decision.accepted is True

    def test_reject_inactive_form(self, template_guard, events):
        template = make_template(forms=["form_1", "form_2"])
        decision = template_guard.request_status(
            template, Status.ACTIVE,
            form_statuses={"form_1": Status.ACTIVE, "form_2": Status.INACTIVE},
        )
        assert decision.accepted is False
        assert decision.error_code == ErrorCode.NO_ACTIVE_FORMS
        assert decision.errors[0].details["formIds"] == ["form_2"]
        assert template.status == Status.INACTIVE
        assert [e.type for e in events] == [EventType.TEMPLATE_ACTIVATION_REJECTED]

    def test_missing_form_status_counts_as_inactive(self, template_guard):
        decision = template_guard.check(make_template(), {})
        assert decision.error_codes == [ErrorCode.NO_ACTIVE_FORMS]

    def test_reject_empty_template(self, template_guard):
        decision = template_guard.check(make_template(forms=[]), {})
        assert decision.error_code == ErrorCode.NO_ACTIVE_FORMS
        assert decision.errors[0].details == {
            "formIds": [], "formCount": 0, "activeFormCount": 0,
        }

    @pytest.mark.parametrize("approver", [None, "", "  "])
    def test_reject_missing_approver(self, template_guard, approver):
        decision = template_guard.check(make_template(approver=approver),
                                        {"form_1": Status.ACTIVE})
        assert decision.error_codes == [ErrorCode.NO_APPROVER]

    def test_every_failure_is_reported(self, template_guard):
        """Failures are collected, not short-circuited."""
        other = make_template("tpl_2", name="ONBOARDING", status=Status.ACTIVE)
        decision = template_guard.check(make_template(approver=None), {}, [other])
        assert decision.error_code == ErrorCode.NO_ACTIVE_FORMS
        assert decision.error_codes == [
            ErrorCode.NO_ACTIVE_FORMS,
            ErrorCode.NO_APPROVER,
            ErrorCode.DUPLICATE_ACTIVE_NAME,
        ]

    def test_duplicate_name_with_inactive_template_is_allowed(self, template_guard):
        other = make_template("tpl_2")
        decision = template_guard.check(make_template(), {"form_1": Status.ACTIVE}, [other])
        assert decision.accepted is True

    def test_deactivate(self, template_guard, events):
        template = make_template(status=Status.ACTIVE)
        assert template_guard.request_status(template, "inactive").accepted is True
        assert template.status == Status.INACTIVE
        assert [e.type for e in events] == [EventType.TEMPLATE_DEACTIVATED]

    def test_invalid_status(self, template_guard):
        with pytest.raises(InvalidStatusError):
            template_guard.request_status(make_template(), "archived")


class TestTemplateEdits:
    """Test template edits and re-checks after form status changes."""

    def test_removing_all_forms_deactivates(self, template_guard, events):
        template = make_template(status=Status.ACTIVE)
        result = template_guard.forms_changed(template, [], {"form_1": Status.ACTIVE})
        assert result.auto_deactivated is True
        assert template.forms == []
        assert [e.type for e in events] == [
            EventType.TEMPLATE_UPDATED,
            EventType.TEMPLATE_AUTO_DEACTIVATED,
        ]

    def test_adding_inactive_form_deactivates(self, template_guard):
        template = make_template(status=Status.ACTIVE)
        result = template_guard.forms_changed(
            template, ["form_1", "form_2"],
            {"form_1": Status.ACTIVE, "form_2": Status.INACTIVE},
        )
        assert result.status == Status.INACTIVE
        assert result.reasons[0].details["formIds"] == ["form_2"]

    def test_clearing_approver_deactivates(self, template_guard):
        template = make_template(status=Status.ACTIVE)
        result = template_guard.approver_changed(template, None, {"form_1": Status.ACTIVE})
        assert result.auto_deactivated is True
        assert [r.code for r in result.reasons] == [ErrorCode.NO_APPROVER]

    def test_edit_on_inactive_template_never_changes_status(self, template_guard):
        template = make_template()
        result = template_guard.approver_changed(template, None, {})
        assert result.status_changed is False
        assert result.reasons == []

    def test_valid_edit_keeps_template_active(self, template_guard):
        template = make_template(status=Status.ACTIVE)
        result = template_guard.approver_changed(template, "user_2", {"form_1": Status.ACTIVE})
        assert result.status == Status.ACTIVE
        assert template.approver_template == "user_2"

    def test_form_deactivation_cascades(self, template_guard, events):
        template = make_template(status=Status.ACTIVE)
        result = template_guard.form_statuses_changed(template, {"form_1": Status.INACTIVE})
        assert result.auto_deactivated is True
        assert [e.type for e in events] == [EventType.TEMPLATE_AUTO_DEACTIVATED]

    def test_form_change_on_healthy_template(self, template_guard, events):
        template = make_template(status=Status.ACTIVE)
        result = template_guard.form_statuses_changed(template, {"form_1": Status.ACTIVE})
        assert result.status_changed is False
        assert events == []

    def test_summarize(self, template_guard):
        template = make_template(forms=["form_1", "form_2", "form_1"])
        stats = template_guard.summarize(
            template, {"form_1": Status.ACTIVE, "form_2": Status.INACTIVE}
        )
        assert stats["formCount"] == 2
        assert stats["activeFormCount"] == 1
        assert stats["hasApprover"] is True
        assert stats["canBeActivated"] is False
        assert stats["validationErrors"][0]["code"] == "NO_ACTIVE_FORMS"
        assert stats["status"] == "inactive"


class TestWithoutEmitter:
    """Guards work without an event emitter."""

    def test_form_guard(self):
        guard = FormActivationGuard(settings=Settings())
        form = make_form()
        assert guard.request_status(form, Status.ACTIVE).accepted is True

    def test_template_guard(self):
        guard = TemplateActivationGuard()
        template = make_template()
        assert guard.request_status(template, Status.ACTIVE, {"form_1": Status.ACTIVE}).accepted
