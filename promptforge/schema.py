import json
from dataclasses import dataclass, field
from typing import Dict, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, TypeAdapter, ValidationError

from .utils import normalize_text

PlatformName = Literal["midjourney", "stable_diffusion", "flux"]
Category = Literal["Character", "Portrait", "Landscape", "Interior", "Object", "Style"]


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class PlatformRow(_Row):
    id: PositiveInt
    name: PlatformName
    description: str = ""


class TemplateRow(_Row):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    base_prompt: str = Field(min_length=1)
    variables: str = ""
    example_values: str = ""
    category: Category


class KeywordRow(_Row):
    id: PositiveInt
    keyword: str = Field(min_length=1)
    category: str = ""
    description: str = ""


class TemplateKeywordRow(_Row):
    id: int
    template_id: str = Field(min_length=1)
    keyword_id: int


class TemplatePlatformParametersRow(_Row):
    id: int
    template_id: str = Field(min_length=1)
    platform_id: int
    parameters: str = ""


PlatformParamsAdapter = TypeAdapter(Dict[str, Union[int, float, str]])


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    code: str

    def to_dict(self):
        return {"field": self.field, "message": self.message, "code": self.code}


@dataclass
class ValidationResult:
    errors: list = field(default_factory=list)

    @property
    def is_valid(self):
        return not self.errors

    def to_dict(self):
        return {"isValid": self.is_valid, "errors": [e.to_dict() for e in self.errors]}


def _issues(exc):
    return [
        ValidationIssue(
            field=".".join(str(p) for p in err.get("loc", ())) or "unknown",
            message=err.get("msg", ""),
            code=err.get("type", "unknown"),
        )
        for err in exc.errors()
    ]


def validate_record(model, data):
    """Return ``(instance, ValidationResult)``; instance is None when invalid."""
    try:
        return model.model_validate(data), ValidationResult()
    except ValidationError as exc:
        return None, ValidationResult(errors=_issues(exc))


def validate_prompt_values(values, variables):
    """Check supplied values against a template's variable names."""
    errors = []
    variables = list(variables)
    for name in variables:
        value = values.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors.append(ValidationIssue(name, f"Value for {name} is required", "required"))
    for key in values:
        if key not in variables:
            errors.append(ValidationIssue(key, f"{key} is not a valid variable for this template", "invalid"))
    return ValidationResult(errors=errors)


def validate_platform_params(params, platform):
    errors = []
    if platform == "midjourney":
        if not isinstance(params, str):
            errors.append(ValidationIssue("parameters", "Midjourney parameters must be a string", "invalid_type"))
        return ValidationResult(errors=errors)

    if isinstance(params, str):
        try:
            params = json.loads(params)
        except ValueError:
            errors.append(ValidationIssue("parameters", "Invalid JSON format for parameters", "invalid_json"))
            return ValidationResult(errors=errors)
    try:
        PlatformParamsAdapter.validate_python(params)
    except ValidationError as exc:
        errors.extend(_issues(exc))
    return ValidationResult(errors=errors)


def sanitize_prompt_input(text, limit=1000):
    text = normalize_text(text)
    text = text.replace("<", "").replace(">", "")
    return text[:limit]
