"""JSON envelope for machine-readable CLI output."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from knnvec._version import __version__


def json_response(schema_id: str, schema_version: int, **data: Any) -> str:
    """Wrap ``data`` with the output schema id, version and producer stamp.

    Example:
        >>> json_response("knn_results", 1, k=2, results=[])  # doctest: +SKIP
        {
          "schema_id": "knn_results",
          "schema_version": 1,
          "producer": "knnvec-0.1.0",
          "produced_at": "2026-10-18T10:30:00+00:00",
          "k": 2,
          "results": []
        }
    """
    wrapped = {
        "schema_id": schema_id,
        "schema_version": schema_version,
        "producer": f"knnvec-{__version__}",
        "produced_at": datetime.now(UTC).isoformat(),
        **data,
    }
    return json.dumps(wrapped, indent=2, default=str)
