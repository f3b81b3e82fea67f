# --- storefront_pricing/utils/api.py ---
from __future__ import annotations
import json
from datetime import datetime, timezone
from decimal import Decimal
from ..errors import PayloadError
from .money import D

ENVELOPE_LIST_KEYS = ("items", "discounts", "results")

def api_ok(message, data=None):
    return {
        "status": True,
        "message": message,
        "data": data if data is not None else {},
    }

def unwrap_items(payload, keys=ENVELOPE_LIST_KEYS) -> list:
    """
    Decode every list shape the admin API has produced, once:

      [ ... ]
      {"data": [ ... ]}
      {"data": {"items": [ ... ]}}      (also "discounts" / "results")
      {"items": [ ... ]}

    A ``status: false`` envelope or any other shape raises PayloadError.
    """
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        raise PayloadError(f"expected a list or an envelope object, got {type(payload).__name__}")

    if payload.get("status") is False or payload.get("success") is False:
        raise PayloadError(payload.get("message") or "envelope reports failure")

    body = payload.get("data", payload)
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for k in keys:
            if isinstance(body.get(k), list):
                return body[k]
    raise PayloadError("envelope carries no item list")

def load_json(text: str):
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise PayloadError(f"invalid JSON: {e.msg} (line {e.lineno})")

def parse_iso8601(s):
    if s is None or s == "":
        return None
    if isinstance(s, datetime):
        dt = s
    else:
        s = str(s).strip()
        # support trailing 'Z' (UTC)
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None  # let validation catch it
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)  # store naive UTC
    return dt

def parse_bool(v, default=False):
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return v == 1
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off", ""}:
        return False
    return default

def parse_number(v, default=None) -> Decimal | None:
    if v is None or (isinstance(v, str) and not v.strip()):
        return default
    try:
        n = D(v)
    except ValueError:
        return default
    return n if n.is_finite() else default

def parse_opt_int(v):
    if v is None:
        return None
    if isinstance(v, str) and v.strip().lower() in {"", "null"}:
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None

def parse_id_list(v) -> list[int]:
    """Ids from a list, a JSON array string, or "1, 2, 3". Junk entries are dropped."""
    if v is None or v == "":
        return []
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return []
        if s.startswith("["):
            try:
                v = json.loads(s)
            except json.JSONDecodeError:
                v = s.strip("[]").split(",")
        else:
            v = s.split(",")
    if not isinstance(v, (list, tuple, set, frozenset)):
        v = [v]

    seen, out = set(), []
    for item in v:
        if isinstance(item, bool):
            continue
        i = parse_opt_int(item.strip() if isinstance(item, str) else item)
        if i is None or i in seen:
            continue
        seen.add(i)
        out.append(i)
    return out
