class PromptForgeError(Exception):
    pass


class ConfigError(PromptForgeError):
    """A required configuration value is missing."""


class UpstreamError(PromptForgeError):
    """A remote API answered with a non-success status."""

    def __init__(self, service, status, body=""):
        self.service = service
        self.status = status
        self.body = body or ""
        detail = self.body[:200] if self.body.strip() else "(empty response)"
        super().__init__(f"{service} API error: {status} {detail}")


class EnhancementResponseError(PromptForgeError):
    """The LLM answered 2xx but without choices[0].message.content."""


class NotionError(UpstreamError):
    def __init__(self, status, body=""):
        super().__init__("Notion", status, body)
