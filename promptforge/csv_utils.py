import io
import logging
import os
from dataclasses import dataclass, field

from .constants import LOGGER_NAME, MIDJOURNEY, NOTION_EXPORT_HEADERS, NOTION_PARAM_PROPERTIES
from .models import Diagnostic
from .utils import json_dumps

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class CSVParseResult:
    rows: list = field(default_factory=list)
    skipped: list = field(default_factory=list)


def parse_csv_line(line):
    """Split one CSV line into trimmed fields.

    Inside quotes a doubled quote emits a literal quote. Any other quote
    toggles quoted mode, and a comma outside quotes ends the field.
    """
    result = []
    current = []
    in_quotes = False
    i = 0
    n = len(line)
    while i < n:
        char = line[i]
        if in_quotes and char == '"' and i + 1 < n and line[i + 1] == '"':
            current.append('"')
            i += 2
            continue
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            result.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    result.append("".join(current).strip())
    return result


def parse_csv(text, source="csv"):
    """Parse a header line plus data lines into dict rows.

    Lines whose field count differs from the header are dropped and reported
    in ``skipped``. Quoted fields may not span lines.
    """
    lines = (text or "").strip().split("\n")
    if len(lines) < 2:
        return CSVParseResult()

    headers = [h.strip() for h in lines[0].rstrip("\r").split(",")]
    out = CSVParseResult()
    for lineno, raw in enumerate(lines[1:], start=2):
        values = parse_csv_line(raw.rstrip("\r"))
        if len(values) != len(headers):
            out.skipped.append(
                Diagnostic(
                    source=source,
                    reason="field_count_mismatch",
                    line=lineno,
                    detail=f"expected {len(headers)} fields, got {len(values)}",
                )
            )
            continue
        out.rows.append(dict(zip(headers, values)))
    return out


def read_csv_file(path):
    name = os.path.basename(path)
    try:
        with open(path, encoding="utf-8-sig") as f:
            text = f.read()
    except FileNotFoundError:
        logger.warning("CSV file not found: %s", path)
        return CSVParseResult(skipped=[Diagnostic(source=name, reason="file_missing", detail=path)])
    return parse_csv(text, source=name)


def escape_csv_field(value):
    value = "" if value is None else str(value)
    if "," in value or '"' in value or "\n" in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def templates_to_csv(templates):
    """Render parsed templates in the layout the Notion CSV importer expects."""
    buf = io.StringIO()
    buf.write(",".join(NOTION_EXPORT_HEADERS) + "\n")
    for tpl in templates:
        data = tpl.to_dict()
        params = data["platformParams"]
        row = {
            "name": data["name"],
            "description": data["description"],
            "base_prompt": data["base_prompt"],
            "variables": ", ".join(data["variables"]),
            "example_values": data["example_values"],
            "category": data["category"],
        }
        for platform, prop in NOTION_PARAM_PROPERTIES.items():
            value = params.get(platform, "")
            if platform != MIDJOURNEY and isinstance(value, dict):
                value = json_dumps(value)
            row[prop] = value
        buf.write(",".join(escape_csv_field(row[h]) for h in NOTION_EXPORT_HEADERS) + "\n")
    return buf.getvalue()
