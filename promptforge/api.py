import json
import logging
from datetime import datetime, timezone

from aiohttp import web

from .assemble import apply_platform_parameters, assemble_prompt, build_user_prompt
from .combine import extract_variables_from_prompt
from .config import notion_enabled
from .constants import LOGGER_NAME, PLATFORM_NAMES
from .csv_utils import templates_to_csv
from .errors import ConfigError, UpstreamError
from .llm import DEFAULT_SYSTEM_PROMPT
from .schema import sanitize_prompt_input, validate_platform_params, validate_prompt_values

logger = logging.getLogger(LOGGER_NAME)

LOADER_KEY = web.AppKey("loader", object)
ENHANCER_KEY = web.AppKey("enhancer", object)
CONFIG_KEY = web.AppKey("config", dict)


def _json_response(obj, status=200):
    return web.Response(
        status=status,
        text=json.dumps(obj, ensure_ascii=False),
        content_type="application/json",
    )


def _bad_request(msg):
    return _json_response({"error": msg}, status=400)


def _server_error(msg):
    return _json_response({"error": msg}, status=500)


def _download_name():
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"promptforge-templates-{stamp}.csv"


def _filter_templates(templates, category="", q=""):
    category = category.strip().lower()
    q = q.strip().lower()
    out = []
    for tpl in templates:
        if category and tpl.category.lower() != category:
            continue
        if q and q not in f"{tpl.name} {tpl.description} {tpl.base_prompt}".lower():
            continue
        out.append(tpl)
    return out


def _validate_enhance_payload(payload):
    if not isinstance(payload, dict):
        return None, _bad_request("Request body must be a JSON object")
    base_prompt = payload.get("base_prompt")
    prompt_values = payload.get("promptValues")
    if not base_prompt or prompt_values is None:
        return None, _bad_request("base_prompt and promptValues are required")
    if not isinstance(base_prompt, str) or not isinstance(prompt_values, dict):
        return None, _bad_request("base_prompt must be a string and promptValues an object")
    platform = payload.get("platform")
    if not isinstance(platform, str):
        platform = ""
    platform_params = payload.get("platformParams") or {}
    if not isinstance(platform_params, dict):
        platform_params = {}
    return {
        "base_prompt": base_prompt,
        "prompt_values": prompt_values,
        "platform": platform,
        "platform_params": platform_params,
        "natural_language": sanitize_prompt_input(payload.get("naturalLanguagePrompt")),
    }, None


def _log_input_issues(data):
    checked = validate_prompt_values(data["prompt_values"], extract_variables_from_prompt(data["base_prompt"]))
    if not checked.is_valid:
        logger.warning("[/api/enhance] prompt values: %s", "; ".join(e.message for e in checked.errors))

    platform = data["platform"]
    selected = data["platform_params"].get(platform)
    if platform in PLATFORM_NAMES and selected is not None:
        checked = validate_platform_params(selected, platform)
        if not checked.is_valid:
            logger.warning("[/api/enhance] invalid %s parameters: %s", platform, "; ".join(e.message for e in checked.errors))


def setup_routes(app):
    routes = web.RouteTableDef()

    @routes.get("/api/health")
    async def health(request):
        source = "notion" if notion_enabled(request.app[CONFIG_KEY]) else "csv"
        return _json_response({"ok": True, "source": source})

    @routes.get("/api/templates")
    async def list_templates(request):
        logger.info("[/api/templates] Fetching template data...")
        loader = request.app[LOADER_KEY]
        try:
            result = await loader.load()
        except Exception:
            logger.exception("[/api/templates] Error loading template data")
            return _server_error("Failed to load template data")
        templates = _filter_templates(
            result.templates,
            category=request.query.get("category", ""),
            q=request.query.get("q", ""),
        )
        logger.info("[/api/templates] Loaded %d templates from %s", len(result.templates), result.source)
        return _json_response({"templates": [t.to_dict() for t in templates]})

    @routes.get("/api/templates/export")
    async def export_templates(request):
        loader = request.app[LOADER_KEY]
        try:
            result = await loader.load()
        except Exception:
            logger.exception("[/api/templates/export] Error loading template data")
            return _server_error("Failed to load template data")
        return web.Response(
            text=templates_to_csv(result.templates),
            content_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{_download_name()}"'},
        )

    @routes.get("/api/templates/{template_id}/platforms")
    async def list_template_platforms(request):
        template_id = request.match_info["template_id"]
        tag = f"[/api/templates/{template_id}/platforms]"
        loader = request.app[LOADER_KEY]
        try:
            items = await loader.load_platform_links(template_id)
        except Exception:
            logger.exception("%s Error loading platform data", tag)
            return _server_error("Failed to load platform data")
        logger.info("%s Found %d platform configurations", tag, len(items))
        return _json_response(items)

    @routes.post("/api/enhance")
    async def enhance(request):
        try:
            payload = await request.json()
        except json.JSONDecodeError:
            return _bad_request("Invalid JSON body")
        data, error = _validate_enhance_payload(payload)
        if error:
            return error
        _log_input_issues(data)

        assembled = assemble_prompt(data["base_prompt"], data["prompt_values"], data["natural_language"])
        combined = assembled["combined"]
        enhancer = request.app[ENHANCER_KEY]
        try:
            enhanced = await enhancer.enhance(DEFAULT_SYSTEM_PROMPT, build_user_prompt(combined))
        except ConfigError as exc:
            logger.error("[/api/enhance] configuration error: %s", exc)
            return _server_error(str(exc))
        except UpstreamError as exc:
            logger.error("[/api/enhance] upstream failure: status=%s", exc.status)
            return _server_error(str(exc))
        except Exception:
            logger.exception("[/api/enhance] Error in enhance API")
            return _server_error("Internal server error")

        final = apply_platform_parameters(enhanced, data["platform"], data["platform_params"])
        return _json_response(
            {
                "enhancedPrompt": final,
                "originalPrompt": combined,
                "platform": data["platform"] or "none",
            }
        )

    app.add_routes(routes)
    return routes
