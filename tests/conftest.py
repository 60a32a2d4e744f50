"""Shared fixtures: an in-memory subject and a recording diagnostics sink."""

from uuid import UUID

import pytest

from rulesync.engine.diagnostics import Diagnostics
from rulesync.host.memory import MemorySubject

SUBJECT_ID = UUID("6f1c2a3b-4d5e-4f60-8172-93a4b5c6d7e8")


@pytest.fixture
def diagnostics() -> Diagnostics:
    return Diagnostics(record=True)


@pytest.fixture
def person() -> MemorySubject:
    return MemorySubject(
        "person",
        {
            "accountName": "jdoe",
            "displayName": "Doe, John",
            "employeeType": "staff",
            "employeeID": "00042",
        },
        unique_id=SUBJECT_ID,
    )
