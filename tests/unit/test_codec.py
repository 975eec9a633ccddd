import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from approvalflow.contracts import ExpenseReport
from approvalflow.errors import PayloadDecodeError
from approvalflow.persistence import decode_payload, encode_payload


def _report(**overrides) -> ExpenseReport:
    data = {
        "report_id": "4b7c0d8e-0000-4000-8000-000000000001",
        "submitted_at": datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
        "employee_name": "Jane Roe",
        "manager_email": "boss@example.com",
        "amount": Decimal("1999.99"),
        "category": "Equipment",
    }
    data.update(overrides)
    return ExpenseReport(**data)


def test_encoded_payload_is_versioned_envelope():
    envelope = json.loads(encode_payload(_report()))

    assert envelope["schema"] == "expense_report"
    assert envelope["version"] == 2
    assert envelope["data"]["amount"] == "1999.99"
    assert envelope["data"]["employee_name"] == "Jane Roe"


def test_decode_preserves_decimal_precision():
    report = _report(amount=Decimal("0.10"))
    decoded = decode_payload(encode_payload(report))

    assert decoded == report
    assert str(decoded.amount) == "0.10"


def test_decode_accepts_parsed_envelope():
    report = _report()
    assert decode_payload(json.loads(encode_payload(report))) == report


def test_decode_upgrades_legacy_camel_case_blob():
    legacy = (
        '{"reportId": "r-1", "employeeId": "EMP-7", "employeeName": "Old Timer",'
        ' "managerEmail": "mgr@example.com", "amount": 42.35,'
        ' "submittedAt": {"seconds": 1700000000, "nanos": 500000000}}'
    )

    report = decode_payload(legacy)

    assert report.report_id == "r-1"
    assert report.employee_id == "EMP-7"
    assert report.amount == Decimal("42.35")
    assert report.submitted_at == datetime.fromtimestamp(1700000000.5, tz=timezone.utc)


@pytest.mark.parametrize(
    "blob",
    [
        "not json",
        "[1, 2, 3]",
        '{"schema": "invoice", "version": 2, "data": {}}',
        '{"schema": "expense_report", "version": 99, "data": {}}',
        '{"schema": "expense_report", "version": 2, "data": {"employee_name": "x"}}',
    ],
)
def test_decode_rejects_bad_payloads(blob):
    with pytest.raises(PayloadDecodeError):
        decode_payload(blob)
