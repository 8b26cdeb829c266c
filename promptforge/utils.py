import json
import re

_ws_re = re.compile(r"\s+")


def normalize_text(s):
    if s is None:
        return ""
    s = str(s).strip()
    s = _ws_re.sub(" ", s)
    return s


def unique(items):
    """Drop empty and repeated items, keeping first-seen order."""
    out = []
    seen = set()
    for item in items or []:
        if not item or item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def json_dumps(obj):
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def loads_json_object(raw):
    """Return the decoded object, or None when `raw` is not a JSON object."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def to_int(value, default=0):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
