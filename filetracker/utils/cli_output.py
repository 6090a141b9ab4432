"""JSON output wrapper for CLI commands.

Every JSON document printed by the CLI carries ``schema_id``,
``schema_version``, ``producer``, and ``produced_at`` so downstream tooling
can tell output shapes apart.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from filetracker import __version__


def json_response(
    schema_id: str,
    schema_version: int,
    **data: Any,
) -> str:
    """Create schema-wrapped JSON response for CLI output.

    Example:
        >>> json_response("verify_result", 1, outcome="success")
        {
          "schema_id": "verify_result",
          "schema_version": 1,
          "producer": "filetracker-0.1.0",
          "produced_at": "2026-10-19T10:30:00+00:00",
          "outcome": "success"
        }
    """
    wrapped = {
        "schema_id": schema_id,
        "schema_version": schema_version,
        "producer": f"filetracker-{__version__}",
        "produced_at": datetime.now(UTC).isoformat(),
        **data,
    }
    return json.dumps(wrapped, indent=2, default=str)
