from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from .constants import PLATFORM_NAMES


@dataclass(frozen=True)
class Platform:
    id: int
    name: str
    description: str = ""


@dataclass(frozen=True)
class TemplateNormalized:
    id: str
    name: str
    description: str
    base_prompt: str
    variables: str
    example_values: str
    category: str


@dataclass(frozen=True)
class Keyword:
    id: int
    keyword: str
    category: str = ""
    description: str = ""

    def to_dict(self):
        return {
            "id": self.id,
            "keyword": self.keyword,
            "category": self.category,
            "description": self.description,
        }


@dataclass(frozen=True)
class TemplateKeyword:
    id: int
    template_id: str
    keyword_id: int


@dataclass(frozen=True)
class TemplatePlatformParameters:
    id: int
    template_id: str
    platform_id: int
    parameters: str


@dataclass(frozen=True)
class TextParameter:
    """Flag string appended verbatim (Midjourney)."""

    text: str

    def to_json(self):
        return self.text


@dataclass(frozen=True)
class StructuredParameter:
    """Parameter object rendered as ``--key value`` flags (Stable Diffusion, Flux)."""

    values: Mapping[str, Union[str, int, float]]

    def to_json(self):
        return dict(self.values)


PlatformParameter = Union[TextParameter, StructuredParameter]


@dataclass(frozen=True)
class ParsedTemplate:
    id: str
    name: str
    description: str
    base_prompt: str
    variables: tuple
    example_values: str
    category: str
    platform_params: Mapping[str, PlatformParameter] = field(default_factory=dict)
    keywords: Optional[tuple] = None

    def __post_init__(self):
        unknown = set(self.platform_params) - set(PLATFORM_NAMES)
        if unknown:
            raise ValueError(f"unknown platform(s): {', '.join(sorted(unknown))}")

    def to_dict(self):
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "base_prompt": self.base_prompt,
            "variables": list(self.variables),
            "example_values": self.example_values,
            "category": self.category,
            "platformParams": {name: param.to_json() for name, param in self.platform_params.items()},
        }
        if self.keywords is not None:
            data["keywords"] = [k.to_dict() for k in self.keywords]
        return data


@dataclass(frozen=True)
class Diagnostic:
    """A tolerated data problem: the record was dropped or passed through."""

    source: str
    reason: str
    line: Optional[int] = None
    detail: str = ""


@dataclass
class LoadResult:
    templates: list = field(default_factory=list)
    keywords: list = field(default_factory=list)
    platforms: list = field(default_factory=list)
    source: str = "fallback"
    diagnostics: list = field(default_factory=list)
