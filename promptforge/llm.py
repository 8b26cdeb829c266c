import json
import logging

import aiohttp

from .config import DEFAULT_LLM_CONFIG, require
from .constants import LOGGER_NAME
from .errors import EnhancementResponseError, UpstreamError

logger = logging.getLogger(LOGGER_NAME)

DEFAULT_SYSTEM_PROMPT = (
    "You are an expert prompt engineer specializing in AI image generation. "
    "Your task is to enhance user prompts to create stunning, detailed images.\n\n"
    "Guidelines for enhancement:\n"
    "- Add specific visual details: lighting, composition, style, mood\n"
    "- Include technical photography/art terms: depth of field, lighting techniques, camera angles\n"
    "- Mention artistic styles or references when relevant\n"
    '- Add quality modifiers: "highly detailed", "8k", "photorealistic", "cinematic"\n'
    "- Be specific about colors, textures, and atmosphere\n"
    "- Keep the core concept intact while adding rich descriptive details\n\n"
    "Return ONLY the enhanced prompt, no explanations."
)


class EnhancementClient:
    def __init__(self, config: dict):
        self.config = {**DEFAULT_LLM_CONFIG, **((config or {}).get("llm") or {})}
        self._full_config = config or {}

    @property
    def _endpoint(self) -> str:
        return f"{self.config['base_url'].rstrip('/')}/chat/completions"

    @property
    def model(self) -> str:
        return self.config.get("model") or DEFAULT_LLM_CONFIG["model"]

    def _headers(self, api_key: str) -> dict:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def build_body(self, system_prompt: str, user_prompt: str) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }

    async def enhance(self, system_prompt: str, user_prompt: str) -> str:
        """Send one chat completion request and return the first choice's text.

        A non-2xx answer raises UpstreamError; there is no retry.
        """
        api_key = require(self._full_config, "llm", "api_key", "OPENROUTER_API_KEY")
        body = self.build_body(system_prompt, user_prompt)
        logger.info("[LLM] endpoint=%s model=%s", self._endpoint, self.model)

        async with aiohttp.ClientSession() as session:
            async with session.post(self._endpoint, json=body, headers=self._headers(api_key)) as resp:
                if resp.status < 200 or resp.status >= 300:
                    text = await resp.text()
                    logger.warning("[LLM] error status=%d body=%s", resp.status, text[:500])
                    raise UpstreamError("OpenRouter", resp.status, text)
                data = await resp.json(content_type=None)

        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise EnhancementResponseError(
                f"Unexpected LLM response shape: {json.dumps(data, ensure_ascii=False)[:300]}"
            )
