"""Base64url segment decoding and typed lookups into decoded JSON objects.

These helpers sit underneath every protocol component: token segments are
decoded with :func:`b64url_decode`, response bodies with
:func:`decode_json_object`, and individual members are pulled out with the
``get_*`` accessors, which check presence and JSON type in one step and raise
instead of handing back a value of unknown type.

JSON type mapping used by the accessors:

======== ==================================
JSON     Python
======== ==================================
string   ``str``
number   ``int`` or ``float`` (never ``bool``)
array    ``list``
object   ``dict``
======== ==================================
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from typing import Any, Optional

from oidcrp.exceptions import OidcrpError, ParseError, ProtocolError

_B64URL_RE = re.compile(r"^[A-Za-z0-9_-]*$")


def b64url_decode(segment: str) -> bytes:
    """Decode one base64url-encoded segment (RFC 4648 section 5).

    Trailing ``=`` padding is tolerated but not required.

    Raises:
        ParseError: If the segment contains characters outside the
            URL-safe alphabet or has an impossible length.
    """
    stripped = segment.rstrip("=")
    if not _B64URL_RE.match(stripped):
        raise ParseError("Segment contains characters outside the base64url alphabet")
    if len(stripped) % 4 == 1:
        raise ParseError("Segment has an invalid base64url length")
    padded = stripped + "=" * (-len(stripped) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as exc:
        raise ParseError(f"Could not base64url-decode segment: {exc}") from exc


def decode_json_object(text: str | bytes, what: str = "JSON document") -> dict[str, Any]:
    """Decode *text* as JSON and require a top-level object.

    Args:
        text: The raw JSON text (bytes are decoded as UTF-8).
        what: Short description used in the error message.

    Raises:
        ParseError: If the text is not valid UTF-8 JSON, holds a number or
            nesting depth the decoder cannot handle, or is not an object.
    """
    try:
        if isinstance(text, bytes):
            text = text.decode("utf-8")
        value = json.loads(text)
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        raise ParseError(f"Could not decode {what} as JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise ParseError(f"{what} is not a JSON object")
    return value


# --- Typed accessors ---


def _missing(obj_name: str, key: str, kind: str) -> str:
    return f"{obj_name} did not contain {kind} \"{key}\""


def get_string(
    obj: dict[str, Any],
    key: str,
    obj_name: str = "response JSON object",
    error: type[OidcrpError] = ProtocolError,
) -> str:
    """Return ``obj[key]`` if it is a JSON string, else raise *error*."""
    value = obj.get(key)
    if not isinstance(value, str):
        raise error(_missing(obj_name, key, "a string"))
    return value


def get_optional_string(
    obj: dict[str, Any],
    key: str,
    obj_name: str = "response JSON object",
    error: type[OidcrpError] = ProtocolError,
) -> Optional[str]:
    """Return ``obj[key]`` if it is a string, ``None`` if absent.

    A member that is present with any other type (including ``null``) is an
    error, not an absence.
    """
    if key not in obj:
        return None
    value = obj[key]
    if not isinstance(value, str):
        raise error(f"{obj_name} contained a \"{key}\" value, but it was not a string")
    return value


def get_number(
    obj: dict[str, Any],
    key: str,
    obj_name: str = "response JSON object",
    error: type[OidcrpError] = ProtocolError,
) -> int | float:
    """Return ``obj[key]`` if it is a JSON number, else raise *error*."""
    value = obj.get(key)
    # bool is an int subclass but true/false are not JSON numbers
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise error(_missing(obj_name, key, "a number"))
    return value


def get_array(
    obj: dict[str, Any],
    key: str,
    obj_name: str = "response JSON object",
    error: type[OidcrpError] = ProtocolError,
) -> list[Any]:
    """Return ``obj[key]`` if it is a JSON array, else raise *error*."""
    value = obj.get(key)
    if not isinstance(value, list):
        raise error(_missing(obj_name, key, "an array"))
    return value


def get_object(
    obj: dict[str, Any],
    key: str,
    obj_name: str = "response JSON object",
    error: type[OidcrpError] = ProtocolError,
) -> dict[str, Any]:
    """Return ``obj[key]`` if it is a JSON object, else raise *error*."""
    value = obj.get(key)
    if not isinstance(value, dict):
        raise error(_missing(obj_name, key, "an object"))
    return value
