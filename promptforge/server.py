import logging

from aiohttp import web

from .api import CONFIG_KEY, ENHANCER_KEY, LOADER_KEY, setup_routes
from .config import load_config, notion_enabled, sanitize_config
from .constants import APP_NAME, LOGGER_NAME, VERSION
from .llm import EnhancementClient
from .loader import TemplateDataLoader

logger = logging.getLogger(LOGGER_NAME)


def create_app(config, loader=None, enhancer=None):
    app = web.Application()
    app[CONFIG_KEY] = config
    app[LOADER_KEY] = loader or TemplateDataLoader(config)
    app[ENHANCER_KEY] = enhancer or EnhancementClient(config)
    setup_routes(app)
    return app


def _log_banner(config):
    banner = f" {APP_NAME} Initialization "
    logger.info("=" * 40 + banner + "=" * 40)
    logger.info("Version: %s", VERSION)
    logger.info("Data source: %s", "notion" if notion_enabled(config) else f"csv ({config['data']['dir'] or 'default'})")
    logger.info("LLM model: %s", config["llm"]["model"])
    logger.debug("Config: %s", sanitize_config(config))
    logger.info("=" * (80 + len(banner)))


def main():
    config = load_config()
    logging.basicConfig(
        level=config["log_level"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _log_banner(config)
    app = create_app(config)
    web.run_app(app, host=config["server"]["host"], port=config["server"]["port"])


if __name__ == "__main__":
    main()
