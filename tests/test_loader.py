import tempfile
import unittest
from pathlib import Path

from promptforge.config import load_config
from promptforge.errors import NotionError
from promptforge.loader import TemplateDataLoader
from promptforge.models import LoadResult, StructuredParameter, TextParameter

FILES = {
    "templates_normalized.csv": (
        "id,name,description,base_prompt,variables,example_values,category\n"
        '1,Animal,An animal,"a [animal] in [style]","animal, style","animal: fox",Style\n'
        "2,Bad,Wrong category,a [thing],thing,,Vehicle\n"
        "3,Short,row\n"
        "4,Room,A room,a [room] interior,room,room: kitchen,Interior\n"
    ),
    "keywords.csv": "id,keyword,category,description\n1,fox,animal,\n2,watercolor,style,\n",
    "platforms.csv": "id,name,description\n1,midjourney,MJ\n2,stable_diffusion,SD\n3,flux,Flux\n",
    "template_keywords.csv": "id,template_id,keyword_id\n1,1,1\n2,1,2\n",
    "template_platform_parameters.csv": (
        "id,template_id,platform_id,parameters\n"
        "1,1,1,--ar 3:2\n"
        '2,1,2,"{""steps"": 20, ""cfg_scale"": 7}"\n'
        "3,4,9,--ar 1:1\n"
        "4,4,3,{not json}\n"
    ),
}


class _FailingNotion:
    def __init__(self, _config):
        pass

    async def get_templates(self):
        raise NotionError(401, "unauthorized")


class _WorkingNotion:
    def __init__(self, _config):
        pass

    async def get_templates(self):
        return LoadResult(source="notion")


class TemplateDataLoaderTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        for name, text in FILES.items():
            (Path(self.temp_dir.name) / name).write_text(text, encoding="utf-8")
        self.config = load_config(environ={"PROMPTFORGE_DATA_DIR": self.temp_dir.name})

    async def test_load_csv_combines_tables(self):
        result = await TemplateDataLoader(self.config).load()

        self.assertEqual(result.source, "csv")
        self.assertEqual([t.id for t in result.templates], ["1", "4"])
        animal, room = result.templates
        self.assertEqual(len(animal.keywords), 2)
        self.assertEqual(animal.platform_params["midjourney"], TextParameter("--ar 3:2"))
        self.assertEqual(
            animal.platform_params["stable_diffusion"],
            StructuredParameter({"steps": 20, "cfg_scale": 7}),
        )
        self.assertEqual(room.platform_params["flux"], TextParameter("{not json}"))
        self.assertEqual(len(result.platforms), 3)

    async def test_diagnostics_report_every_dropped_record(self):
        result = await TemplateDataLoader(self.config).load()

        reasons = sorted(d.reason for d in result.diagnostics)
        self.assertEqual(reasons, ["field_count_mismatch", "invalid_record", "unknown_platform"])

    async def test_missing_data_dir_gives_empty_fallback(self):
        config = load_config(environ={"PROMPTFORGE_DATA_DIR": str(Path(self.temp_dir.name) / "nope")})
        result = await TemplateDataLoader(config).load()
        self.assertEqual(result.source, "fallback")
        self.assertEqual(result.templates, [])

    async def test_notion_failure_falls_back_to_csv(self):
        self.config["notion"].update({"api_key": "ntn_x", "database_id": "db"})
        with self.assertLogs("PromptForge", level="ERROR"):
            result = await TemplateDataLoader(self.config, notion_client_cls=_FailingNotion).load()
        self.assertEqual(result.source, "csv")

    async def test_notion_used_when_configured(self):
        self.config["notion"].update({"api_key": "ntn_x", "database_id": "db"})
        result = await TemplateDataLoader(self.config, notion_client_cls=_WorkingNotion).load()
        self.assertEqual(result.source, "notion")

    async def test_platform_links_for_template(self):
        items = await TemplateDataLoader(self.config).load_platform_links("4")

        self.assertEqual([i["platform_name"] for i in items], ["platform_9", "flux"])
        self.assertEqual(items[1]["parameters"], "{not json}")


if __name__ == "__main__":
    unittest.main()
