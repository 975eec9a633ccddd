"""Versioned serialization for the checkpoint payload.

Payloads are stored as a JSON envelope::

    {"schema": "expense_report", "version": 2, "data": {...}}

Amounts are written as decimal strings so no precision is lost. Version 1
blobs are the bare camelCase objects written by the first release (no
envelope, ``amount`` as a JSON number and ``submittedAt`` as an
``{"seconds": .., "nanos": ..}`` object); they are upgraded on read.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from ..contracts import ExpenseReport
from ..errors import PayloadDecodeError

PAYLOAD_SCHEMA = "expense_report"
PAYLOAD_VERSION = 2


def encode_payload(report: ExpenseReport) -> str:
    envelope = {
        "schema": PAYLOAD_SCHEMA,
        "version": PAYLOAD_VERSION,
        "data": report.model_dump(mode="json"),
    }
    return json.dumps(envelope, sort_keys=True)


def decode_payload(blob: str | bytes | dict) -> ExpenseReport:
    if isinstance(blob, dict):
        raw: Any = blob
    else:
        try:
            raw = json.loads(blob, parse_float=Decimal)
        except (TypeError, ValueError) as exc:
            raise PayloadDecodeError(f"Payload is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise PayloadDecodeError("Payload must be a JSON object")

    if "schema" not in raw:
        return _decode_v1(raw)

    if raw.get("schema") != PAYLOAD_SCHEMA:
        raise PayloadDecodeError(f"Unknown payload schema: {raw.get('schema')!r}")
    version = raw.get("version")
    if version == 1:
        return _decode_v1(raw.get("data") or {})
    if version != PAYLOAD_VERSION:
        raise PayloadDecodeError(f"Unsupported payload version: {version!r}")
    return _validate(raw.get("data"))


def _decode_v1(data: dict[str, Any]) -> ExpenseReport:
    upgraded = dict(data)
    submitted = upgraded.get("submittedAt")
    if isinstance(submitted, dict):
        seconds = int(submitted.get("seconds", 0))
        nanos = int(submitted.get("nanos", 0))
        upgraded["submittedAt"] = datetime.fromtimestamp(
            seconds + nanos / 1_000_000_000, tz=timezone.utc
        )
    elif isinstance(submitted, (int, Decimal)):
        upgraded["submittedAt"] = datetime.fromtimestamp(int(submitted), tz=timezone.utc)
    return _validate(upgraded)


def _validate(data: Any) -> ExpenseReport:
    try:
        return ExpenseReport.model_validate(data)
    except ValidationError as exc:
        raise PayloadDecodeError(f"Payload failed schema validation: {exc}") from exc
