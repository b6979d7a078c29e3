"""Encode metadata as an on-chain ``data:`` token URI."""

from __future__ import annotations

import base64
import binascii
import json

from mojomint.metadata.models import NFTMetadata

DATA_URI_PREFIX = "data:application/json;base64,"


def encode_token_uri(metadata: NFTMetadata) -> str:
    """Return ``data:application/json;base64,<json>`` for ``metadata``."""
    payload = json.dumps(metadata.to_json_dict(), ensure_ascii=False, separators=(",", ":"))
    encoded = base64.b64encode(payload.encode("utf-8")).decode("ascii")
    return DATA_URI_PREFIX + encoded


def decode_token_uri(token_uri: str) -> NFTMetadata:
    """Parse a token URI produced by ``encode_token_uri``.

    Raises:
        ValueError: If the URI is not a base64 JSON data URI or the JSON is
            not valid metadata.
    """
    if not token_uri.startswith(DATA_URI_PREFIX):
        raise ValueError(f"Not a base64 JSON data URI: {token_uri[:40]!r}")
    try:
        raw = base64.b64decode(token_uri[len(DATA_URI_PREFIX) :], validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Malformed token URI: {e}") from e
    return NFTMetadata.model_validate(data)
