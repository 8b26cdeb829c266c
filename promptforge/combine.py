import logging
import re

from .constants import LOGGER_NAME, MIDJOURNEY, PLATFORM_NAMES
from .models import Diagnostic, ParsedTemplate, StructuredParameter, TextParameter
from .utils import loads_json_object, unique

logger = logging.getLogger(LOGGER_NAME)

_placeholder_re = re.compile(r"\[([^\[\]]+)\]")


def parse_variables(variables_text):
    if not variables_text:
        return []
    return [v.strip() for v in variables_text.split(",") if v.strip()]


def extract_variables_from_prompt(prompt):
    return unique(m.group(1) for m in _placeholder_re.finditer(prompt or ""))


def _is_scalar(value):
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def parse_platform_params(platform_name, text):
    """Build the parameter variant for a platform, or None for empty text.

    Midjourney text is never decoded. Other platforms get a StructuredParameter
    when the text is a JSON object of scalars, else the text passes through.
    """
    text = (text or "").strip()
    if not text:
        return None
    if platform_name == MIDJOURNEY:
        return TextParameter(text)
    if text.startswith("{") and text.endswith("}"):
        data = loads_json_object(text)
        if data is not None and all(_is_scalar(v) for v in data.values()):
            return StructuredParameter(data)
    return TextParameter(text)


def combine_template_data(
    templates,
    keywords,
    platforms,
    template_keywords,
    template_platform_params,
    diagnostics=None,
):
    """Join the normalized tables into one ParsedTemplate per template."""
    keywords_by_id = {k.id: k for k in keywords}
    platforms_by_id = {p.id: p for p in platforms}

    keyword_ids = {}
    for link in template_keywords:
        keyword_ids.setdefault(link.template_id, set()).add(link.keyword_id)

    params_by_template = {}
    for link in template_platform_params:
        params_by_template.setdefault(link.template_id, []).append(link)

    out = []
    for tpl in templates:
        variables = unique(parse_variables(tpl.variables) + extract_variables_from_prompt(tpl.base_prompt))

        ids = keyword_ids.get(tpl.id, set())
        resolved = tuple(k for k in keywords if k.id in ids)
        missing = ids - set(keywords_by_id)
        if missing and diagnostics is not None:
            diagnostics.append(
                Diagnostic(
                    source="template_keywords",
                    reason="unknown_keyword",
                    detail=f"template {tpl.id}: keyword id(s) {sorted(missing)}",
                )
            )

        platform_params = {}
        for link in params_by_template.get(tpl.id, []):
            platform = platforms_by_id.get(link.platform_id)
            if platform is None or platform.name not in PLATFORM_NAMES:
                if diagnostics is not None:
                    diagnostics.append(
                        Diagnostic(
                            source="template_platform_parameters",
                            reason="unknown_platform",
                            detail=f"template {tpl.id}: platform id {link.platform_id}",
                        )
                    )
                continue
            param = parse_platform_params(platform.name, link.parameters)
            if param is not None:
                platform_params[platform.name] = param

        out.append(
            ParsedTemplate(
                id=tpl.id,
                name=tpl.name,
                description=tpl.description,
                base_prompt=tpl.base_prompt,
                variables=tuple(variables),
                example_values=tpl.example_values,
                category=tpl.category,
                platform_params=platform_params,
                keywords=resolved,
            )
        )
    logger.debug("Combined %d templates", len(out))
    return out
