import json
import logging
import os
import sys
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from imcode.logging import log_event
from imcode.logging_utils import JsonFormatter, setup_logger


class LoggingTests(unittest.TestCase):
    def test_log_event_appends_jsonl(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            os.environ["IMCODE_HOME"] = temp_dir
            try:
                log_event({"event": "artifact_created", "project_id": "project_1", "path": "contracts/Token.move"})
                log_event({"event": "artifact_deleted"})
            finally:
                os.environ.pop("IMCODE_HOME", None)

            log_path = Path(temp_dir) / "logs" / "events.log"
            lines = log_path.read_text(encoding="utf-8").strip().splitlines()
            self.assertEqual(len(lines), 2)
            payload = json.loads(lines[0])
            self.assertEqual(payload["event"], "artifact_created")
            self.assertEqual(payload["project_id"], "project_1")
            self.assertEqual(payload["path"], "contracts/Token.move")
            self.assertEqual(payload["level"], "INFO")
            self.assertIsNotNone(datetime.fromisoformat(payload["ts"]).tzinfo)
            self.assertIsNone(json.loads(lines[1])["project_id"])

    def test_log_event_survives_unwritable_directory(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            blocker = Path(temp_dir) / "logs"
            blocker.write_text("not a directory", encoding="utf-8")
            os.environ["IMCODE_HOME"] = temp_dir
            try:
                with self.assertLogs("imcode.events", level="WARNING"):
                    log_event({"event": "artifact_created"})
            finally:
                os.environ.pop("IMCODE_HOME", None)

    def test_log_event_honours_explicit_data_dir(self) -> None:
        with tempfile.TemporaryDirectory() as home, tempfile.TemporaryDirectory() as configured:
            os.environ["IMCODE_HOME"] = home
            try:
                log_event({"event": "project_created"}, data_dir=Path(configured))
            finally:
                os.environ.pop("IMCODE_HOME", None)

            lines = (Path(configured) / "logs" / "events.log").read_text(encoding="utf-8").splitlines()
            self.assertEqual(json.loads(lines[0])["event"], "project_created")
            self.assertFalse((Path(home) / "logs").exists())

    def test_appended_events_are_synced_to_disk(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch("imcode.fs.atomic.os.fsync") as fsync:
                log_event({"event": "artifact_created"}, data_dir=Path(temp_dir))
            fsync.assert_called_once()

    def test_setup_logger_writes_json_lines(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            logger = setup_logger("imcode.test_setup", Path(temp_dir), console=False)
            try:
                logger.info("saved %s", "project_1")
                for handler in logger.handlers:
                    handler.flush()
                payload = json.loads((Path(temp_dir) / "imcode.log").read_text(encoding="utf-8").strip())
                self.assertEqual(payload["message"], "saved project_1")
                self.assertEqual(payload["level"], "INFO")
                self.assertEqual(payload["logger"], "imcode.test_setup")
                self.assertIs(setup_logger("imcode.test_setup", Path(temp_dir)), logger)
                self.assertEqual(len(logger.handlers), 1)
            finally:
                for handler in list(logger.handlers):
                    handler.close()
                    logger.removeHandler(handler)

    def test_json_formatter_includes_exception(self) -> None:
        try:
            raise ValueError("bad payload")
        except ValueError:
            record = logging.getLogger("imcode").makeRecord(
                "imcode", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        payload = json.loads(JsonFormatter().format(record))
        self.assertIn("ValueError: bad payload", payload["exc_info"])


if __name__ == "__main__":
    unittest.main()
