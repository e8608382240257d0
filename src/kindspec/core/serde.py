"""
JSON serialization/deserialization of Kindly values in record form.

Record form is the wire shape:
``{"code": str, "form": any, "value": any, "kind": str, "hideCode"?: bool,
"options"?: {"hideValue"?: bool, ...}}``; fragment values are lists of such
records. Serialization goes through ``canonical.to_wire`` so nested Kindly
values are written as records too.

Notes:
    - Use ``json_dumps_canonical`` for deterministic JSON strings prior to hashing,
      caching, or persistence.
    - ``record_from_json`` validates the top-level record with KindlyRecord and the
      whole tree with the grammar; it returns plain mappings.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from .canonical import to_wire
from .config import GrammarSettings
from .errors import GrammarError

# Re-export canonical dumps to keep a single canonicalization policy.
from .hashing import json_dumps_canonical
from .schema import KindlyRecord
from .typing import RecordDict
from .validate import explain

__all__ = [
    "json_loads",
    "json_dumps_canonical",
    "record_to_json",
    "record_from_json",
]


def json_loads(s: str) -> Any:
    """
    Deserialize a JSON string to Python objects using the stdlib json module.

    Args:
        s (str): JSON string to parse.

    Returns:
        Any: Decoded Python object (dict, list, str, int, float, bool, or None).
    """
    return json.loads(s)


def record_to_json(v: Any, settings: GrammarSettings | None = None) -> str:
    """
    Serialize a Kindly value (any representation) as canonical record JSON.

    Raises:
        GrammarError: If ``v`` is not a Kindly value.
        TypeError: If the payload or form is not JSON-serializable.

    Examples:
        >>> from kindspec.core.annotate import annotate
        >>> record_to_json(annotate(3, "code", hide_code=True))
        '{"code":"","form":null,"hideCode":true,"kind":"code","value":3}'
    """
    return json_dumps_canonical(to_wire(v, settings))


def record_from_json(s: str, settings: GrammarSettings | None = None) -> RecordDict:
    """
    Parse record JSON back into a record mapping.

    Args:
        s (str): JSON produced by ``record_to_json`` (or any record-form JSON).
        settings (GrammarSettings | None): Policy toggles (defaults when None).

    Returns:
        RecordDict: Record with normalized properties; nested records are kept as parsed.

    Raises:
        GrammarError: If the JSON is not a valid Kindly record.
    """
    data = json_loads(s)
    try:
        rec = KindlyRecord.model_validate(data)
    except ValidationError as exc:
        raise GrammarError(f"invalid record JSON: {exc.error_count()} error(s)") from exc
    out = rec.to_record()
    report = explain(out, settings)
    if report is not None:
        raise GrammarError(f"invalid record JSON: {report[0]}", tuple(report))
    return out
