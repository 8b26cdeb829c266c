import re
from collections.abc import Mapping

from .constants import MIDJOURNEY, STRUCTURED_PLATFORMS
from .models import StructuredParameter, TextParameter
from .utils import json_dumps

_placeholder_re = re.compile(r"\[([^\[\]]+)\]")

USER_PROMPT_TEMPLATE = 'Enhance this prompt for an AI image generator:\n\n"{prompt}"'


def substitute(base_prompt, values):
    """Replace every ``[name]`` whose name is in ``values``.

    One pass over the original text: substituted values are never scanned
    again, so a value containing ``[other]`` stays literal.
    """
    values = values or {}

    def _sub(match):
        name = match.group(1)
        if name in values:
            return format_value(values[name])
        return match.group(0)

    return _placeholder_re.sub(_sub, base_prompt or "")


def combine_natural_language(guidance, filled_prompt):
    guidance = (guidance or "").strip()
    if not guidance:
        return filled_prompt
    return f"{guidance}, {filled_prompt}"


def build_user_prompt(combined_prompt):
    return USER_PROMPT_TEMPLATE.format(prompt=combined_prompt)


def format_value(value):
    # Scalars print the way JSON prints them, so 7.0 is "7" and None is "null".
    if value is None or isinstance(value, bool):
        return json_dumps(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_platform_parameter(values):
    return " ".join(f"--{key} {format_value(value)}" for key, value in values.items())


def _unwrap(param):
    if isinstance(param, TextParameter):
        return param.text
    if isinstance(param, StructuredParameter):
        return param.values
    return param


def apply_platform_parameters(prompt, platform_name=None, platform_params=None):
    """Append the platform's parameters when they have the expected shape.

    Midjourney takes a flag string, Stable Diffusion and Flux take a mapping.
    Anything else leaves the prompt untouched.
    """
    if not platform_name or not platform_params:
        return prompt
    params = _unwrap(platform_params.get(platform_name))
    if not params:
        return prompt

    if platform_name == MIDJOURNEY and isinstance(params, str):
        return f"{prompt} {params}"
    if platform_name in STRUCTURED_PLATFORMS and isinstance(params, Mapping):
        return f"{prompt} {format_platform_parameter(params)}"
    return prompt


def assemble_prompt(base_prompt, prompt_values, natural_language=""):
    """Fill the template and prepend any free-text guidance.

    Returns the text sent for enhancement plus a trace of what was filled.
    """
    trace = []
    filled = substitute(base_prompt, prompt_values)
    for name in _placeholder_re.findall(base_prompt or ""):
        if name in (prompt_values or {}):
            trace.append({"type": "slot", "name": name, "value": prompt_values[name]})
        else:
            trace.append({"type": "slot_unfilled", "name": name})
    combined = combine_natural_language(natural_language, filled)
    if combined != filled:
        trace.append({"type": "natural_language", "value": natural_language.strip()})
    return {"filled": filled, "combined": combined, "trace": trace}
