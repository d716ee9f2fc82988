"""
Utility Module: Defensive JSON Field Extraction.

CoinGecko omits fields freely: a coin without a GitHub repository has no
'developer_data', historical snapshots before a listing date have no
'market_data', and numeric leaves are sometimes null. Every accessor here is
total: it accepts a missing node, a missing field, or a value of the wrong
type, and answers with a defined default instead of raising.

Bodies are parsed with `parse_float=Decimal`, so currency amounts never pass
through a binary float.
"""

import json
from decimal import Decimal
from typing import Any, Dict, Optional

ZERO = Decimal(0)

# Integer fields map to 64-bit counters on the backend (|n| < 10**19)
MAX_INTEGER_EXPONENT = 18
# Decimals are serialized in positional notation, so the exponent must stay bounded
MAX_DECIMAL_EXPONENT = 1000

def parse_json(body: str) -> Any:
    """
    Parses a raw response body into a JSON tree with exact decimals.

    Raises:
        ValueError: If the body is not valid JSON (json.JSONDecodeError).
    """
    return json.loads(body, parse_float=Decimal)

def _is_number(value: Any) -> bool:
    # bool is a subclass of int, but 'true' is not a market figure
    return isinstance(value, (int, Decimal, float)) and not isinstance(value, bool)

def _field(node: Any, field: str) -> Any:
    if not isinstance(node, dict):
        return None
    return node.get(field)

def get_section(node: Any, field: str) -> Optional[Dict[str, Any]]:
    """Returns the nested object under `field`, or None if absent or not an object."""
    value = _field(node, field)
    return value if isinstance(value, dict) else None

def get_text(node: Any, field: str) -> str:
    """Returns the field as text, or an empty string if absent or null."""
    value = _field(node, field)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)

def get_decimal(node: Any, field: str) -> Decimal:
    """
    Returns the field as a Decimal, or zero if absent, not numeric, not finite
    or with an exponent too large to write out positionally.
    """
    value = _field(node, field)
    if not _is_number(value):
        return ZERO
    # floats only reach here for trees not produced by parse_json
    number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    if not number.is_finite() or abs(number.adjusted()) > MAX_DECIMAL_EXPONENT:
        return ZERO
    return number

def get_integer(node: Any, field: str, default: int = 0) -> int:
    """
    Returns the field as an int (decimals truncated), or `default` if absent,
    not numeric, or beyond the 64-bit counter range.
    """
    value = _field(node, field)
    if not _is_number(value):
        return default
    number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    if not number.is_finite() or number.adjusted() > MAX_INTEGER_EXPONENT:
        return default
    if number.adjusted() < 0:
        # |number| < 1
        return 0
    return int(number)
