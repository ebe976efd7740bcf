# storefront/utils/parsing.py
import json
from datetime import datetime, timezone

from ..errors import ValidationError

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def utcnow():
    """Naive UTC now; all datetimes are stored as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_bool(v, default=False):
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in _TRUE


def coerce_flag(v):
    """Strict boolean: True/False/1/0 and their string forms, else raises ValueError."""
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)) and v in (0, 1):
        return bool(v)
    s = str(v).strip().lower()
    if s in {"1", "true"}:
        return True
    if s in {"0", "false"}:
        return False
    raise ValueError(f"not a boolean: {v!r}")


def text_field(data, key, strip=True):
    """String value of ``key`` or "" when absent; other JSON types are rejected."""
    v = data.get(key)
    if v is None:
        return ""
    if not isinstance(v, str):
        raise ValidationError(f"{key} must be a string")
    return v.strip() if strip else v


def parse_opt_int(v):
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, str) and v.strip().lower() in {"", "null"}:
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def parse_int_list(v):
    """Accept a list, a JSON-encoded list or a comma-separated string of ids."""
    if v is None or v == "":
        return []
    if isinstance(v, str):
        s = v.strip()
        if s.startswith("["):
            try:
                v = json.loads(s)
            except ValueError:
                return []
        else:
            v = s.split(",")
    if not isinstance(v, (list, tuple)):
        v = [v]
    out = []
    for x in v:
        n = parse_opt_int(x.strip() if isinstance(x, str) else x)
        if n is not None and n not in out:
            out.append(n)
    return out


def parse_iso8601(s):
    if not s:
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
            return None
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)  # store naive UTC
    return dt


def isoformat(dt):
    return dt.isoformat() if dt else None
