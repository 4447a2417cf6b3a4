"""Domain preconditions passed to the executor at the call site."""

from datetime import timedelta

import pytest

from conftest import NOW, make_resource
from lifecycle_engine.domain.exceptions import ErrorCode, PreconditionFailedError
from lifecycle_engine.domain.preconditions import (
    completion_report_required,
    only_for,
    require_fields,
    require_future_timestamp,
    require_min_length,
    require_valid_subscription_period,
)
from lifecycle_engine.domain.status import ResourceKind


@pytest.fixture
def service_request():
    return make_resource(ResourceKind.SERVICE_REQUEST, "in_progress")


def test_completion_report_rejects_short_description(service_request):
    check = completion_report_required()
    with pytest.raises(PreconditionFailedError) as exc_info:
        check(service_request, "completed", {"work_description": "fixed it"})
    assert exc_info.value.code == ErrorCode.PRECONDITION_FAILED
    assert exc_info.value.details["field"] == "work_description"


def test_completion_report_ignores_whitespace_padding(service_request):
    check = completion_report_required()
    with pytest.raises(PreconditionFailedError):
        check(service_request, "completed", {"work_description": "short" + " " * 30})


def test_completion_report_accepts_full_description(service_request):
    completion_report_required()(
        service_request,
        "completed",
        {"work_description": "Replaced the hydraulic pump seal and tested pressure."},
    )


def test_completion_report_only_applies_to_completion(service_request):
    completion_report_required()(service_request, "disputed", {})


def test_require_fields_lists_missing(service_request):
    check = require_fields("technician_id", "invoice_id")
    with pytest.raises(PreconditionFailedError) as exc_info:
        check(service_request, "completed", {"technician_id": "tech-1"})
    assert exc_info.value.details["missing"] == ["invoice_id"]


def test_require_min_length_rejects_non_string(service_request):
    with pytest.raises(PreconditionFailedError):
        require_min_length("note", 3)(service_request, "completed", {"note": 12345})


def test_require_future_timestamp(service_request):
    check = require_future_timestamp("scheduled_at", lambda: NOW)
    check(service_request, "accepted", {"scheduled_at": NOW + timedelta(hours=1)})
    with pytest.raises(PreconditionFailedError):
        check(service_request, "accepted", {"scheduled_at": NOW})
    with pytest.raises(PreconditionFailedError):
        check(service_request, "accepted", {})


def test_only_for_skips_other_targets(service_request):
    check = only_for("cancelled", require_fields("reason"))
    check(service_request, "completed", {})
    with pytest.raises(PreconditionFailedError):
        check(service_request, "cancelled", {})


def test_reactivation_needs_future_expiry():
    sub = make_resource(
        ResourceKind.SUBSCRIPTION,
        "expired",
        subscription_expires_at=NOW - timedelta(days=20),
    )
    check = require_valid_subscription_period(lambda: NOW)
    with pytest.raises(PreconditionFailedError):
        check(sub, "active", {})
    check(sub, "active", {"subscription_expires_at": NOW + timedelta(days=365)})
