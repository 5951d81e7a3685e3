"""Descriptive metadata documents for fragments."""

from __future__ import annotations

import base64
import json
from typing import Any

from .contracts import FragmentRecord


DATA_URI_PREFIX = "data:application/json;base64,"


def build_fragment_metadata(record: FragmentRecord, *, base_uri: str, quota: int) -> dict[str, Any]:
    image = f"{base_uri}{record.parent_id}/{record.ordinal}.png" if base_uri else ""
    return {
        "name": f"Fragment #{record.fragment_id}",
        "description": f"Fragment {record.ordinal} of {quota} for parent #{record.parent_id}.",
        "image": image,
        "attributes": [
            {"trait_type": "Parent", "value": record.parent_id},
            {"trait_type": "Ordinal", "value": f"{record.ordinal}/{quota}"},
            {"trait_type": "State", "value": record.state_label.value},
        ],
    }


def encode_token_uri(document: dict[str, Any]) -> str:
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return DATA_URI_PREFIX + base64.b64encode(canonical.encode("utf-8")).decode("ascii")


def decode_token_uri(uri: str) -> dict[str, Any]:
    if not uri.startswith(DATA_URI_PREFIX):
        raise ValueError("token uri is not a base64 JSON data uri")
    raw = base64.b64decode(uri[len(DATA_URI_PREFIX) :])
    return json.loads(raw.decode("utf-8"))
