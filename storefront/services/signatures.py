"""NOWPayments IPN signatures.

The provider signs ``JSON.stringify`` of the notification with object keys
sorted, using HMAC-SHA512 keyed with the IPN secret. The canonical string has
to match the provider byte for byte, so serialization here reproduces the
JavaScript rules rather than ``json.dumps`` defaults:

* keys of every object reachable through objects are sorted by UTF-16 code
  units; objects nested inside arrays keep their received key order;
* integer-like keys ("0", "17") are always emitted first, ascending, the
  way JavaScript enumerates object properties;
* numbers are IEEE doubles printed with ``Number.prototype.toString``
  (``15`` not ``15.0``, ``1e-7``, ``1e+21``);
* strings are emitted without ASCII escaping; lone surrogates are escaped.
"""

import hashlib
import hmac
import json
import math
import re
from decimal import Decimal
from typing import Any

_ARRAY_INDEX_RE = re.compile(r"0|[1-9][0-9]*")
_MAX_ARRAY_INDEX = 2**32 - 2
_LONE_SURROGATE_RE = re.compile("[\ud800-\udfff]")


def _is_array_index(key: str) -> bool:
    return _ARRAY_INDEX_RE.fullmatch(key) is not None and int(key) <= _MAX_ARRAY_INDEX


def _utf16_sort_key(key: str) -> bytes:
    return key.encode("utf-16-be", "surrogatepass")


def _property_order(obj: dict) -> list[str]:
    index_keys = sorted((key for key in obj if _is_array_index(key)), key=int)
    named_keys = [key for key in obj if not _is_array_index(key)]
    return index_keys + named_keys


def sort_keys(obj: dict) -> dict:
    """Return a copy of ``obj`` with keys sorted, recursing into nested objects only."""
    result = {}
    for key in sorted(obj, key=_utf16_sort_key):
        value = obj[key]
        result[key] = sort_keys(value) if isinstance(value, dict) else value
    return result


def _shortest_digits(value: float) -> tuple[str, int]:
    _, digit_tuple, exponent = Decimal(repr(value)).as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    stripped = digits.rstrip("0")
    return stripped, exponent + len(digits) - len(stripped)


def format_number(value: float) -> str:
    if not math.isfinite(value):
        return "null"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    digits, exponent = _shortest_digits(abs(value))
    k = len(digits)
    n = exponent + k

    if k <= n <= 21:
        body = digits + "0" * (n - k)
    elif 0 < n <= 21:
        body = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        body = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        body = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + body


def _quote(value: str) -> str:
    encoded = json.dumps(value, ensure_ascii=False)
    return _LONE_SURROGATE_RE.sub(lambda match: f"\\u{ord(match.group()):04x}", encoded)


def _serialize(value: Any) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, int):
        try:
            return format_number(float(value))
        except OverflowError:
            return "null"
    if isinstance(value, float):
        return format_number(value)
    if isinstance(value, list):
        return "[" + ",".join(_serialize(item) for item in value) + "]"
    if isinstance(value, dict):
        members = (f"{_quote(key)}:{_serialize(value[key])}" for key in _property_order(value))
        return "{" + ",".join(members) + "}"
    raise TypeError(f"Unsupported JSON value: {type(value).__name__}")


def canonicalize(payload: dict) -> str:
    """Serialize a parsed notification into the string the provider signs."""
    if not isinstance(payload, dict):
        raise TypeError("IPN payload must be a JSON object")
    return _serialize(sort_keys(payload))


def sign_payload(payload: dict, secret: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        canonicalize(payload).encode("utf-8"),
        hashlib.sha512,
    ).hexdigest()


def verify_signature(payload: dict, signature: str | None, secret: str) -> bool:
    """Case-insensitive constant-time comparison against the expected HMAC."""
    if not signature or not secret:
        return False
    candidate = signature.strip().lower()
    if not candidate.isascii():
        return False
    return hmac.compare_digest(sign_payload(payload, secret), candidate)
