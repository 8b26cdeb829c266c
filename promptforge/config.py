import copy
import os

from dotenv import load_dotenv

from .constants import NOTION_BASE_URL
from .errors import ConfigError
from .utils import to_int

DEFAULT_MODEL = "openai/gpt-3.5-turbo"

DEFAULT_LLM_CONFIG = {
    "base_url": "https://openrouter.ai/api/v1",
    "model": DEFAULT_MODEL,
    "api_key": "",
}

DEFAULT_NOTION_CONFIG = {
    "base_url": NOTION_BASE_URL,
    "api_key": "",
    "database_id": "",
}

DEFAULT_CONFIG = {
    "llm": DEFAULT_LLM_CONFIG,
    "notion": DEFAULT_NOTION_CONFIG,
    "data": {"dir": ""},
    "server": {"host": "127.0.0.1", "port": 8080},
    "log_level": "INFO",
}

# environment variable -> (section, key)
ENV_VARS = {
    "OPENROUTER_API_KEY": ("llm", "api_key"),
    "OPENROUTER_MODEL": ("llm", "model"),
    "OPENROUTER_BASE_URL": ("llm", "base_url"),
    "NOTION_API_KEY": ("notion", "api_key"),
    "NOTION_DATABASE_ID": ("notion", "database_id"),
    "PROMPTFORGE_DATA_DIR": ("data", "dir"),
    "PROMPTFORGE_HOST": ("server", "host"),
    "PROMPTFORGE_PORT": ("server", "port"),
}

# Settings files read when no explicit environment is passed.
ENV_FILES = (".env.local", ".env")


def normalize_config(config):
    out = copy.deepcopy(DEFAULT_CONFIG)
    for section, values in (config or {}).items():
        if isinstance(values, dict) and isinstance(out.get(section), dict):
            out[section].update(values)
        else:
            out[section] = values
    for section in ("llm", "notion", "data"):
        for key, value in out[section].items():
            out[section][key] = str(value or "").strip()
    if not out["llm"]["model"]:
        out["llm"]["model"] = DEFAULT_MODEL
    if not out["llm"]["base_url"]:
        out["llm"]["base_url"] = DEFAULT_LLM_CONFIG["base_url"]
    if not out["notion"]["base_url"]:
        out["notion"]["base_url"] = NOTION_BASE_URL
    out["server"]["port"] = to_int(out["server"].get("port"), 8080)
    out["log_level"] = str(out.get("log_level") or "INFO").upper()
    return out


def load_config(environ=None, env_file=None):
    """Build the process configuration once, from the environment."""
    if environ is None:
        if env_file:
            load_dotenv(env_file, override=False)
        else:
            for name in ENV_FILES:
                if os.path.exists(name):
                    load_dotenv(name, override=False)
        environ = os.environ

    config = {}
    for env_name, (section, key) in ENV_VARS.items():
        value = environ.get(env_name)
        if value:
            config.setdefault(section, {})[key] = value
    if environ.get("PROMPTFORGE_LOG_LEVEL"):
        config["log_level"] = environ["PROMPTFORGE_LOG_LEVEL"]
    return normalize_config(config)


def notion_enabled(config):
    notion = (config or {}).get("notion") or {}
    return bool(notion.get("api_key") and notion.get("database_id"))


def require(config, section, key, env_name):
    value = ((config or {}).get(section) or {}).get(key)
    if not value or "your-" in value:
        raise ConfigError(f"{env_name} is not configured")
    return value


def _mask(value):
    if value and len(value) > 4:
        return value[:2] + "*" * (len(value) - 4) + value[-2:]
    return value


def sanitize_config(config):
    safe = copy.deepcopy(config or {})
    for section in ("llm", "notion"):
        if isinstance(safe.get(section), dict) and safe[section].get("api_key"):
            safe[section]["api_key"] = _mask(safe[section]["api_key"])
    return safe
