APP_NAME = "PromptForge"
VERSION = "1.0.0"

LOGGER_NAME = "PromptForge"

MIDJOURNEY = "midjourney"
STABLE_DIFFUSION = "stable_diffusion"
FLUX = "flux"

PLATFORM_NAMES = (MIDJOURNEY, STABLE_DIFFUSION, FLUX)
# Platforms whose parameters are stored as JSON objects.
STRUCTURED_PLATFORMS = (STABLE_DIFFUSION, FLUX)

TEMPLATES_CSV = "templates_normalized.csv"
KEYWORDS_CSV = "keywords.csv"
PLATFORMS_CSV = "platforms.csv"
TEMPLATE_KEYWORDS_CSV = "template_keywords.csv"
TEMPLATE_PLATFORM_PARAMETERS_CSV = "template_platform_parameters.csv"

# Layout expected by the Notion CSV importer.
NOTION_EXPORT_HEADERS = (
    "name",
    "description",
    "base_prompt",
    "variables",
    "example_values",
    "category",
    "mj_params",
    "sd_params",
    "flux_params",
)

# Notion rich-text property holding each platform's parameters.
NOTION_PARAM_PROPERTIES = {
    MIDJOURNEY: "mj_params",
    STABLE_DIFFUSION: "sd_params",
    FLUX: "flux_params",
}

NOTION_API_VERSION = "2025-09-03"
NOTION_BASE_URL = "https://api.notion.com"
