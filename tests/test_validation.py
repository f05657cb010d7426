"""Tests for input validation."""

import pytest

from approval_svc.submissions.errors import ValidationFailed
from approval_svc.submissions.types import AssetType, EscalationTarget
from approval_svc.submissions.validation import (
    AccessRequestForm,
    AssetSubmissionForm,
    parse,
    validate_comment,
    validate_decision,
    validate_escalation,
    validate_revision,
)


def asset_form(**overrides):
    data = {
        "name": "Customer Transactions 2024",
        "type": "dataset",
        "description": "Daily card transactions",
        "category": "Finance",
        "producer": "Payments Data Team",
        "email": "payments@example.com",
        "data_governance": {
            "has_personal_data": True,
            "data_classification": "confidential",
            "retention_period": "7 years",
        },
    }
    data.update(overrides)
    return data


def access_form(**overrides):
    data = {
        "asset_id": "S1",
        "business_justification": "Quarterly revenue reconciliation for finance",
        "use_case": "Join against ledger entries in the finance warehouse",
        "requested_access_level": "read",
    }
    data.update(overrides)
    return data


class TestWorkflowInputs:

    def test_comment_is_trimmed(self):
        data = validate_comment("  hello  ", "schema")
        assert data.message == "hello"
        assert data.phase == "schema"

    def test_decision_returns_text(self):
        assert validate_decision(" ok ") == "ok"

    def test_decision_too_long(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_decision("x" * 2001)
        assert exc_info.value.errors[0].startswith("comment:")

    def test_revision(self):
        revision = validate_revision("Add a schema", "Data Governance")
        assert revision.refer_to_team == "Data Governance"

    def test_escalation_target(self):
        data = validate_escalation("SLA breached", "senior-reviewer")
        assert data.escalate_to == EscalationTarget.SENIOR_REVIEWER
        assert data.escalate_to.label == "Senior Data Steward"


class TestAssetSubmissionForm:

    def test_valid(self):
        form = parse(AssetSubmissionForm, asset_form())
        assert form.type == AssetType.DATASET
        assert form.data_governance.has_personal_data
        assert form.endpoint is None

    def test_empty_urls_are_none(self):
        form = parse(AssetSubmissionForm, asset_form(endpoint="  ", documentation=""))
        assert form.endpoint is None
        assert form.documentation is None

    def test_invalid_url(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse(AssetSubmissionForm, asset_form(endpoint="not a url"))
        assert any(e.startswith("endpoint") for e in exc_info.value.errors)

    def test_invalid_email(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse(AssetSubmissionForm, asset_form(email="nobody"))
        assert any(e.startswith("email") for e in exc_info.value.errors)

    def test_every_failing_field_is_reported(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse(AssetSubmissionForm, asset_form(name="", category="", type="spreadsheet"))
        fields = {e.split(":")[0] for e in exc_info.value.errors}
        assert {"name", "category", "type"} <= fields

    def test_unknown_classification(self):
        governance = {"data_classification": "secret", "retention_period": "1 year"}
        with pytest.raises(ValidationFailed) as exc_info:
            parse(AssetSubmissionForm, asset_form(data_governance=governance))
        assert any(e.startswith("data_governance.data_classification") for e in exc_info.value.errors)


class TestAccessRequestForm:

    def test_valid(self):
        form = parse(AccessRequestForm, access_form())
        assert form.requested_access_level == "read"
        assert form.expected_tps is None

    def test_justification_too_short(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse(AccessRequestForm, access_form(business_justification="need it"))
        assert exc_info.value.errors[0].startswith("business_justification:")

    def test_unknown_access_level(self):
        with pytest.raises(ValidationFailed):
            parse(AccessRequestForm, access_form(requested_access_level="owner"))
