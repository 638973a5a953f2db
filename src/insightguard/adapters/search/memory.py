"""In-memory record search for development and testing."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from insightguard.core.domain_types import AuthenticatedUser, SearchCriteria
from insightguard.safety.pii import redact_pii

DEFAULT_HIDDEN_FIELDS = frozenset({"email", "fname", "lname", "phone", "ssn"})


class InMemoryRecordSearch:
    """RecordSearch over a fixed list of records.

    Mirrors what the production search layer guarantees: tenant scoping
    for external tenants, identifying fields dropped, and remaining string
    values passed through PII redaction.

    This adapter is useful for:
    - Unit testing without a search cluster
    - Local development with seed data

    Attributes:
        records: The full, unredacted record list.
    """

    def __init__(
        self,
        records: list[dict[str, Any]] | None = None,
        hidden_fields: frozenset[str] = DEFAULT_HIDDEN_FIELDS,
    ) -> None:
        self.records = list(records or [])
        self.hidden_fields = hidden_fields

    async def search(
        self,
        criteria: SearchCriteria,
        user: AuthenticatedUser,
    ) -> list[dict[str, Any]]:
        """Return up to criteria.limit visible, redacted records."""
        matches = []
        for record in self.records:
            if user.tenant_type == "external" and record.get("tenant_id") != user.tenant_id:
                continue
            if criteria.location_id and record.get("location_id") != criteria.location_id:
                continue
            matches.append(self._redact(record))
            if len(matches) >= criteria.limit:
                break
        return matches

    def _redact(self, record: dict[str, Any]) -> dict[str, Any]:
        return {
            key: redact_pii(value) if isinstance(value, str) else value
            for key, value in record.items()
            if key not in self.hidden_fields
        }


def load_seed_data(path: str | Path) -> dict[str, list[dict[str, Any]]]:
    """Load seed records from a JSON file.

    The file is a mapping with optional "members" and "locations" lists.

    Args:
        path: Path to the JSON file.

    Returns:
        Mapping with "members" and "locations" record lists.
    """
    with open(path) as f:
        data = json.load(f)
    return {
        "members": list(data.get("members", [])),
        "locations": list(data.get("locations", [])),
    }
