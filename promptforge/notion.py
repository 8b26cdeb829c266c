import logging

import aiohttp

from .combine import combine_template_data
from .config import DEFAULT_NOTION_CONFIG, require
from .constants import (
    FLUX,
    LOGGER_NAME,
    MIDJOURNEY,
    NOTION_API_VERSION,
    NOTION_PARAM_PROPERTIES,
    PLATFORM_NAMES,
    STABLE_DIFFUSION,
)
from .errors import NotionError
from .models import Diagnostic, LoadResult, Platform, TemplateNormalized, TemplatePlatformParameters
from .schema import TemplateRow, validate_record

logger = logging.getLogger(LOGGER_NAME)

# Notion stores one row per template, so platforms are fixed reference data.
NOTION_PLATFORMS = [
    Platform(id=1, name=MIDJOURNEY, description="Midjourney"),
    Platform(id=2, name=STABLE_DIFFUSION, description="Stable Diffusion"),
    Platform(id=3, name=FLUX, description="Flux"),
]

_RICH_TEXT_PROPERTIES = ("description", "base_prompt", "variables", "example_values") + tuple(
    NOTION_PARAM_PROPERTIES.values()
)


def _plain_text(items):
    return "".join((item or {}).get("plain_text", "") for item in items or [])


def read_property(properties, name):
    prop = (properties or {}).get(name) or {}
    kind = prop.get("type")
    if kind == "title":
        return _plain_text(prop.get("title"))
    if kind == "rich_text":
        return _plain_text(prop.get("rich_text"))
    if kind == "select":
        return ((prop.get("select") or {}).get("name")) or ""
    return ""


def page_to_record(page):
    props = page.get("properties") or {}
    record = {"id": page.get("id", ""), "name": read_property(props, "name")}
    for name in _RICH_TEXT_PROPERTIES:
        record[name] = read_property(props, name)
    record["category"] = read_property(props, "category")
    return record


class NotionClient:
    page_size = 100

    def __init__(self, config: dict):
        self._full_config = config or {}
        self.config = {**DEFAULT_NOTION_CONFIG, **(self._full_config.get("notion") or {})}

    def _url(self, path):
        return f"{self.config['base_url'].rstrip('/')}{path}"

    def _headers(self):
        api_key = require(self._full_config, "notion", "api_key", "NOTION_API_KEY")
        return {
            "Authorization": f"Bearer {api_key}",
            "Notion-Version": NOTION_API_VERSION,
            "Content-Type": "application/json",
        }

    async def _request(self, session, method, path, body=None):
        async with session.request(method, self._url(path), json=body) as resp:
            if resp.status != 200:
                text = await resp.text()
                raise NotionError(resp.status, text)
            return await resp.json(content_type=None)

    async def _paginate(self, session, path):
        pages = []
        cursor = None
        while True:
            body = {"page_size": self.page_size}
            if cursor:
                body["start_cursor"] = cursor
            data = await self._request(session, "POST", path, body)
            pages.extend(data.get("results") or [])
            if not data.get("has_more") or not data.get("next_cursor"):
                return pages
            cursor = data["next_cursor"]

    async def query_pages(self):
        """Query every page of the database.

        Uses the database's first data source when it has one; otherwise, or
        when that query is rejected, falls back to the legacy database query.
        """
        database_id = require(self._full_config, "notion", "database_id", "NOTION_DATABASE_ID")
        async with aiohttp.ClientSession(headers=self._headers()) as session:
            db = await self._request(session, "GET", f"/v1/databases/{database_id}")
            sources = db.get("data_sources") or []
            data_source_id = (sources[0] or {}).get("id") if sources else None
            if data_source_id:
                try:
                    pages = await self._paginate(session, f"/v1/data_sources/{data_source_id}/query")
                    logger.info("[Notion] queried data source %s: %d pages", data_source_id, len(pages))
                    return pages
                except NotionError as exc:
                    if exc.status not in (400, 404):
                        raise
                    logger.warning("[Notion] data source query failed (%s), using legacy query", exc.status)
            pages = await self._paginate(session, f"/v1/databases/{database_id}/query")
            logger.info("[Notion] legacy query: %d pages", len(pages))
            return pages

    async def get_templates(self) -> LoadResult:
        pages = await self.query_pages()
        diagnostics = []
        templates = []
        links = []
        platform_ids = {p.name: p.id for p in NOTION_PLATFORMS}
        for index, page in enumerate(pages):
            record = page_to_record(page)
            row, result = validate_record(TemplateRow, record)
            if row is None:
                diagnostics.append(
                    Diagnostic(
                        source="notion",
                        reason="invalid_template",
                        line=index + 1,
                        detail="; ".join(f"{e.field}: {e.message}" for e in result.errors),
                    )
                )
                continue
            templates.append(TemplateNormalized(**row.model_dump()))
            for platform in PLATFORM_NAMES:
                text = record.get(NOTION_PARAM_PROPERTIES[platform], "")
                if text.strip():
                    links.append(
                        TemplatePlatformParameters(
                            id=len(links) + 1,
                            template_id=row.id,
                            platform_id=platform_ids[platform],
                            parameters=text,
                        )
                    )

        parsed = combine_template_data(templates, [], NOTION_PLATFORMS, [], links, diagnostics=diagnostics)
        return LoadResult(
            templates=parsed,
            keywords=[],
            platforms=list(NOTION_PLATFORMS),
            source="notion",
            diagnostics=diagnostics,
        )
