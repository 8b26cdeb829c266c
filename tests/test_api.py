import unittest

from aiohttp.test_utils import TestClient, TestServer

from promptforge.config import load_config
from promptforge.errors import ConfigError, UpstreamError
from promptforge.models import LoadResult, ParsedTemplate, StructuredParameter, TextParameter
from promptforge.server import create_app


def _template(tpl_id, name, category, base_prompt):
    return ParsedTemplate(
        id=tpl_id,
        name=name,
        description=f"{name} template",
        base_prompt=base_prompt,
        variables=("animal", "style"),
        example_values="",
        category=category,
        platform_params={
            "midjourney": TextParameter("--ar 3:2"),
            "flux": StructuredParameter({"steps": 28}),
        },
        keywords=(),
    )


class _FakeLoader:
    def __init__(self):
        self.fail = False
        self.result = LoadResult(
            templates=[
                _template("1", "Animal study", "Style", "a [animal] in [style]"),
                _template("2", "Portrait", "Portrait", "portrait of [animal]"),
            ],
            source="csv",
        )

    async def load(self):
        if self.fail:
            raise RuntimeError("disk on fire")
        return self.result

    async def load_platform_links(self, template_id):
        return [{"id": 1, "template_id": template_id, "platform_id": 1, "parameters": "--ar 1:1", "platform_name": "midjourney"}]


class _FakeEnhancer:
    def __init__(self):
        self.reply = "A fox rendered in watercolor, highly detailed"
        self.error = None
        self.calls = []

    async def enhance(self, system_prompt, user_prompt):
        self.calls.append((system_prompt, user_prompt))
        if self.error:
            raise self.error
        return self.reply


class ApiTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.loader = _FakeLoader()
        self.enhancer = _FakeEnhancer()
        app = create_app(load_config(environ={}), loader=self.loader, enhancer=self.enhancer)
        self.client = TestClient(TestServer(app))
        await self.client.start_server()

    async def asyncTearDown(self):
        await self.client.close()

    async def test_list_templates(self):
        resp = await self.client.get("/api/templates")
        self.assertEqual(resp.status, 200)
        data = await resp.json()
        self.assertEqual([t["id"] for t in data["templates"]], ["1", "2"])
        self.assertEqual(data["templates"][0]["platformParams"], {"midjourney": "--ar 3:2", "flux": {"steps": 28}})

    async def test_list_templates_filters(self):
        resp = await self.client.get("/api/templates", params={"category": "portrait"})
        data = await resp.json()
        self.assertEqual([t["id"] for t in data["templates"]], ["2"])

        resp = await self.client.get("/api/templates", params={"q": "animal study"})
        data = await resp.json()
        self.assertEqual([t["id"] for t in data["templates"]], ["1"])

    async def test_list_templates_failure(self):
        self.loader.fail = True
        with self.assertLogs("PromptForge", level="ERROR"):
            resp = await self.client.get("/api/templates")
        self.assertEqual(resp.status, 500)
        self.assertEqual(await resp.json(), {"error": "Failed to load template data"})

    async def test_template_platforms(self):
        resp = await self.client.get("/api/templates/7/platforms")
        data = await resp.json()
        self.assertEqual(data[0]["template_id"], "7")
        self.assertEqual(data[0]["platform_name"], "midjourney")

    async def test_export_csv(self):
        resp = await self.client.get("/api/templates/export")
        self.assertEqual(resp.status, 200)
        self.assertEqual(resp.content_type, "text/csv")
        self.assertIn("attachment;", resp.headers["Content-Disposition"])
        lines = (await resp.text()).splitlines()
        self.assertEqual(len(lines), 3)
        self.assertTrue(lines[0].startswith("name,description,base_prompt"))

    async def test_health(self):
        resp = await self.client.get("/api/health")
        self.assertEqual(await resp.json(), {"ok": True, "source": "csv"})

    async def test_enhance_end_to_end(self):
        resp = await self.client.post(
            "/api/enhance",
            json={
                "base_prompt": "a [animal] in [style]",
                "promptValues": {"animal": "fox", "style": "watercolor"},
                "platform": "midjourney",
                "platformParams": {"midjourney": "--ar 3:2"},
            },
        )

        self.assertEqual(resp.status, 200)
        self.assertEqual(
            await resp.json(),
            {
                "enhancedPrompt": "A fox rendered in watercolor, highly detailed --ar 3:2",
                "originalPrompt": "a fox in watercolor",
                "platform": "midjourney",
            },
        )
        _system, user = self.enhancer.calls[0]
        self.assertIn('"a fox in watercolor"', user)

    async def test_enhance_with_guidance_and_structured_params(self):
        resp = await self.client.post(
            "/api/enhance",
            json={
                "base_prompt": "a [animal]",
                "promptValues": {"animal": "owl"},
                "platform": "stable_diffusion",
                "platformParams": {"stable_diffusion": {"steps": 20, "cfg_scale": 7}},
                "naturalLanguagePrompt": "at night",
            },
        )
        data = await resp.json()
        self.assertEqual(data["originalPrompt"], "at night, a owl")
        self.assertTrue(data["enhancedPrompt"].endswith(" --steps 20 --cfg_scale 7"))

    async def test_enhance_without_platform(self):
        resp = await self.client.post("/api/enhance", json={"base_prompt": "a [x]", "promptValues": {"x": "y"}})
        data = await resp.json()
        self.assertEqual(data["platform"], "none")
        self.assertEqual(data["enhancedPrompt"], self.enhancer.reply)

    async def test_enhance_accepts_empty_prompt_values(self):
        resp = await self.client.post("/api/enhance", json={"base_prompt": "a cat", "promptValues": {}})
        self.assertEqual(resp.status, 200)
        data = await resp.json()
        self.assertEqual(data["originalPrompt"], "a cat")
        self.assertEqual(len(self.enhancer.calls), 1)

    async def test_enhance_cleans_guidance_text(self):
        resp = await self.client.post(
            "/api/enhance",
            json={"base_prompt": "a [animal]", "promptValues": {"animal": "owl"}, "naturalLanguagePrompt": "  at   <night> "},
        )
        self.assertEqual((await resp.json())["originalPrompt"], "at night, a owl")

    async def test_enhance_logs_value_and_parameter_problems(self):
        with self.assertLogs("PromptForge", level="WARNING") as logs:
            resp = await self.client.post(
                "/api/enhance",
                json={
                    "base_prompt": "a [animal] in [style]",
                    "promptValues": {"animal": "fox"},
                    "platform": "midjourney",
                    "platformParams": {"midjourney": {"ar": "1:1"}},
                },
            )
        self.assertEqual(resp.status, 200)
        output = "\n".join(logs.output)
        self.assertIn("Value for style is required", output)
        self.assertIn("invalid midjourney parameters", output)
        self.assertEqual((await resp.json())["enhancedPrompt"], self.enhancer.reply)

    async def test_enhance_requires_fields(self):
        resp = await self.client.post("/api/enhance", json={"base_prompt": "a [x]"})
        self.assertEqual(resp.status, 400)
        self.assertIn("error", await resp.json())
        self.assertEqual(self.enhancer.calls, [])

    async def test_enhance_rejects_invalid_json(self):
        resp = await self.client.post("/api/enhance", data="{not json", headers={"Content-Type": "application/json"})
        self.assertEqual(resp.status, 400)

    async def test_upstream_failure_is_500(self):
        self.enhancer.error = UpstreamError("OpenRouter", 502, "bad gateway")
        with self.assertLogs("PromptForge", level="ERROR"):
            resp = await self.client.post("/api/enhance", json={"base_prompt": "a [x]", "promptValues": {"x": "y"}})
        self.assertEqual(resp.status, 500)
        self.assertIn("502", (await resp.json())["error"])
        self.assertEqual(len(self.enhancer.calls), 1)

    async def test_missing_api_key_is_500(self):
        self.enhancer.error = ConfigError("OPENROUTER_API_KEY is not configured")
        with self.assertLogs("PromptForge", level="ERROR"):
            resp = await self.client.post("/api/enhance", json={"base_prompt": "a [x]", "promptValues": {"x": "y"}})
        self.assertEqual(resp.status, 500)
        self.assertEqual(await resp.json(), {"error": "OPENROUTER_API_KEY is not configured"})

    async def test_unexpected_failure_is_generic_500(self):
        self.enhancer.error = KeyError("choices")
        with self.assertLogs("PromptForge", level="ERROR"):
            resp = await self.client.post("/api/enhance", json={"base_prompt": "a [x]", "promptValues": {"x": "y"}})
        self.assertEqual(resp.status, 500)
        self.assertEqual(await resp.json(), {"error": "Internal server error"})


if __name__ == "__main__":
    unittest.main()
