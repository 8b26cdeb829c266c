import asyncio
import logging
import os

import aiohttp

from .combine import combine_template_data
from .config import notion_enabled
from .constants import (
    KEYWORDS_CSV,
    LOGGER_NAME,
    PLATFORMS_CSV,
    TEMPLATE_KEYWORDS_CSV,
    TEMPLATE_PLATFORM_PARAMETERS_CSV,
    TEMPLATES_CSV,
)
from .csv_utils import read_csv_file
from .errors import PromptForgeError
from .models import (
    Diagnostic,
    Keyword,
    LoadResult,
    Platform,
    TemplateKeyword,
    TemplateNormalized,
    TemplatePlatformParameters,
)
from .notion import NotionClient
from .paths import csv_path, get_data_dir
from .schema import (
    KeywordRow,
    PlatformRow,
    TemplateKeywordRow,
    TemplatePlatformParametersRow,
    TemplateRow,
    validate_record,
)

logger = logging.getLogger(LOGGER_NAME)

# file -> (row schema, record type)
CSV_TABLES = {
    TEMPLATES_CSV: (TemplateRow, TemplateNormalized),
    KEYWORDS_CSV: (KeywordRow, Keyword),
    PLATFORMS_CSV: (PlatformRow, Platform),
    TEMPLATE_KEYWORDS_CSV: (TemplateKeywordRow, TemplateKeyword),
    TEMPLATE_PLATFORM_PARAMETERS_CSV: (TemplatePlatformParametersRow, TemplatePlatformParameters),
}


def coerce_rows(rows, filename, diagnostics):
    """Validate raw CSV rows into records; invalid rows become diagnostics."""
    model, record_cls = CSV_TABLES[filename]
    out = []
    for index, raw in enumerate(rows):
        row, result = validate_record(model, raw)
        if row is None:
            diagnostics.append(
                Diagnostic(
                    source=filename,
                    reason="invalid_record",
                    detail=f"row {index + 1}: " + "; ".join(f"{e.field}: {e.message}" for e in result.errors),
                )
            )
            continue
        out.append(record_cls(**row.model_dump()))
    return out


class TemplateDataLoader:
    def __init__(self, config: dict, notion_client_cls=NotionClient):
        self.config = config or {}
        self.data_dir = get_data_dir(self.config)
        self._notion_client_cls = notion_client_cls

    async def _read_table(self, filename, diagnostics):
        parsed = await asyncio.to_thread(read_csv_file, csv_path(self.data_dir, filename))
        diagnostics.extend(parsed.skipped)
        return coerce_rows(parsed.rows, filename, diagnostics)

    async def load_csv(self) -> LoadResult:
        diagnostics = []
        templates, keywords, platforms, template_keywords, template_params = await asyncio.gather(
            *(self._read_table(name, diagnostics) for name in CSV_TABLES)
        )
        parsed = combine_template_data(
            templates,
            keywords,
            platforms,
            template_keywords,
            template_params,
            diagnostics=diagnostics,
        )
        return LoadResult(
            templates=parsed,
            keywords=keywords,
            platforms=platforms,
            source="csv",
            diagnostics=diagnostics,
        )

    async def load_notion(self) -> LoadResult:
        return await self._notion_client_cls(self.config).get_templates()

    async def load(self) -> LoadResult:
        """Load templates from Notion when configured, otherwise from CSV."""
        result = None
        if notion_enabled(self.config):
            try:
                result = await self.load_notion()
            except (PromptForgeError, aiohttp.ClientError, asyncio.TimeoutError):
                logger.exception("Failed to fetch data from Notion")
        if result is None:
            if os.path.isdir(self.data_dir):
                result = await self.load_csv()
            else:
                logger.warning("No data source available (data dir %s missing)", self.data_dir)
                result = LoadResult()
        self._log_diagnostics(result)
        return result

    async def load_platform_links(self, template_id):
        diagnostics = []
        links, platforms = await asyncio.gather(
            self._read_table(TEMPLATE_PLATFORM_PARAMETERS_CSV, diagnostics),
            self._read_table(PLATFORMS_CSV, diagnostics),
        )
        names = {p.id: p.name for p in platforms}
        return [
            {
                "id": link.id,
                "template_id": link.template_id,
                "platform_id": link.platform_id,
                "parameters": link.parameters,
                "platform_name": names.get(link.platform_id, f"platform_{link.platform_id}"),
            }
            for link in links
            if link.template_id == template_id
        ]

    @staticmethod
    def _log_diagnostics(result):
        if not result.diagnostics:
            logger.info("Loaded %d templates from %s", len(result.templates), result.source)
            return
        logger.warning(
            "Loaded %d templates from %s, %d record(s) skipped or degraded",
            len(result.templates),
            result.source,
            len(result.diagnostics),
        )
        for diag in result.diagnostics:
            logger.debug("  %s line=%s %s: %s", diag.source, diag.line, diag.reason, diag.detail)
