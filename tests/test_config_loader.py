import os
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from imcode.config import (
    DEFAULT_CONFIG,
    ConfigLoader,
    artifact_settings,
    configured_data_dir,
    get_config_value,
    resolve_data_dir,
)


class ConfigLoaderTests(unittest.TestCase):
    def test_precedence_and_sources(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir)
            (data_dir / "config.yaml").write_text(
                "\n".join(
                    [
                        "artifacts:",
                        "  min_content_length: 5",
                        "providers:",
                        "  openai:",
                        "    model: gpt-4o",
                    ]
                ),
                encoding="utf-8",
            )
            loader = ConfigLoader(data_dir)
            resolution = loader.resolve({"providers": {"openai": {"model": "gpt-4.1"}}})

            self.assertEqual(resolution.effective["artifacts"]["min_content_length"], 5)
            self.assertEqual(resolution.sources["artifacts"]["min_content_length"], "global")
            self.assertEqual(resolution.effective["providers"]["openai"]["model"], "gpt-4.1")
            self.assertEqual(resolution.sources["providers"]["openai"]["model"], "cli")
            self.assertEqual(resolution.sources["chat"]["context_turns"], "default")
            self.assertEqual(resolution.get("chat.context_turns"), 4)
            self.assertIsNone(resolution.get("chat.missing"))
            self.assertEqual(resolution.effective["imcode"]["data_dir"], str(data_dir))

    def test_set_global_value_writes_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            loader = ConfigLoader(Path(temp_dir))
            loader.set_global_value("persistence.debounce_s", 0.5)
            self.assertIn("debounce_s: 0.5", loader.global_config_path().read_text(encoding="utf-8"))
            self.assertEqual(loader.resolve().get("persistence.debounce_s"), 0.5)

    def test_invalid_yaml_raises(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            loader = ConfigLoader(Path(temp_dir))
            loader.global_config_path().write_text("artifacts: [unclosed", encoding="utf-8")
            with self.assertRaises(RuntimeError):
                loader.resolve()

    def test_unknown_key(self) -> None:
        with self.assertRaises(KeyError):
            get_config_value({"artifacts": {}}, "artifacts.nope")

    def test_data_dir_from_environment(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            os.environ["IMCODE_HOME"] = temp_dir
            try:
                self.assertEqual(resolve_data_dir(), Path(temp_dir))
                self.assertEqual(ConfigLoader().data_dir, Path(temp_dir))
            finally:
                os.environ.pop("IMCODE_HOME", None)

    def test_configured_data_dir(self) -> None:
        self.assertIsNone(configured_data_dir(DEFAULT_CONFIG))
        self.assertIsNone(configured_data_dir(None))
        self.assertEqual(configured_data_dir({"imcode": {"data_dir": "/srv/imcode"}}), Path("/srv/imcode"))

    def test_artifact_settings_fill_defaults(self) -> None:
        settings = artifact_settings({"artifacts": {"update_mode": "merge"}})
        self.assertEqual(settings["update_mode"], "merge")
        self.assertEqual(settings["min_content_length"], 20)
        self.assertEqual(artifact_settings(None)["default_language"], "move")


if __name__ == "__main__":
    unittest.main()
