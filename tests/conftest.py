"""
Shared fixtures for the harness tests.
"""

import copy
from datetime import datetime, timezone

import pytest

from failure_first.document import FailureSpecDocument
from failure_first.main import HarnessConfig


FIXED_NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
FIXED_TIMESTAMP = "2026-01-15T12:00:00Z"


def build_entry(entry_id="F001", severity="critical", evidence_type="unit_test", **overrides):
    """Raw entry dict that passes every structural check"""
    entry = {
        "id": entry_id,
        "title": f"Failure {entry_id}",
        "severity": severity,
        "oracle": {
            "condition": f"Request for {entry_id} without a valid signature returns 401",
            "falsifiable": True,
        },
        "repro": {
            "preconditions": ["Service running"],
            "steps": ["Send unsigned request", "Observe response"],
            "expected_if_vulnerable": "Request is accepted",
        },
        "evidence_requirement": {
            "type": evidence_type,
            "criteria": "Unsigned request is rejected with 401",
        },
        "impact": "Forged events are processed",
        "detection": "Audit log shows unsigned requests",
        "status": {"state": "unaddressed"},
    }
    entry.update(overrides)
    return entry


def build_spec(*entries, feature="webhook-handler", frozen=False):
    """Raw document dict"""
    spec = {
        "version": "1.0",
        "metadata": {
            "feature": feature,
            "created_by": "alice@example.com",
            "frozen_at": "2026-01-10T09:00:00Z" if frozen else None,
            "frozen_fingerprint": None,
        },
        "failures": [copy.deepcopy(e) for e in entries] or [build_entry()],
    }
    return spec


@pytest.fixture
def clock():
    """Deterministic clock"""
    return lambda: FIXED_NOW


@pytest.fixture
def entry_factory():
    return build_entry


@pytest.fixture
def spec_factory():
    return build_spec


@pytest.fixture
def raw_spec():
    """Two-entry document: one critical, one low"""
    return build_spec(
        build_entry("F001", severity="critical"),
        build_entry("F002", severity="low", evidence_type="code_review"),
    )


@pytest.fixture
def document(raw_spec):
    return FailureSpecDocument.from_dict(raw_spec)


@pytest.fixture
def config(tmp_path):
    """Harness config rooted in a temp workspace"""
    return HarnessConfig(workspace_path=tmp_path, evidence_timeout_ms=10000)
