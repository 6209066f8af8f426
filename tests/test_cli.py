"""CLI tests for the extract and codes commands."""

import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

sys.path.insert(0, str(Path(__file__).parent.parent))

from shoplinker_extractor.cli import cli
from shoplinker_extractor.errors import ConsoleSessionError


class TestCliExtract(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()

    @patch("shoplinker_extractor.cli.setup_logging")
    @patch("shoplinker_extractor.cli.ensure_directories")
    @patch("shoplinker_extractor.cli.load_config", return_value={"logging": {}})
    @patch("shoplinker_extractor.cli.run_extraction")
    def test_extract_defaults(self, mock_run_extraction, *_mocks):
        mock_run_extraction.return_value = {
            "status": "completed",
            "started_at": "2026-10-19T00:00:00+00:00",
            "completed_at": "2026-10-19T00:05:00+00:00",
            "products_planned": 2,
            "products_extracted": 2,
            "products_failed": 0,
            "errors": [],
            "output_path": "output.csv",
        }
        result = self.runner.invoke(cli, ["extract"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("EXTRACTION RESULTS", result.output)

        kwargs = mock_run_extraction.call_args.kwargs
        self.assertIsNone(kwargs["input_path"])
        self.assertIsNone(kwargs["output_path"])
        self.assertIsNone(kwargs["images_dir"])
        self.assertIsNone(kwargs["headless"])
        self.assertEqual(kwargs["offset"], 0)
        self.assertIsNone(kwargs["limit"])
        self.assertFalse(kwargs["dry_plan"])

    @patch("shoplinker_extractor.cli.setup_logging")
    @patch("shoplinker_extractor.cli.ensure_directories")
    @patch("shoplinker_extractor.cli.load_config", return_value={"logging": {}})
    @patch("shoplinker_extractor.cli.run_extraction")
    def test_extract_passes_options_and_reports_errors(self, mock_run_extraction, *_mocks):
        mock_run_extraction.return_value = {
            "status": "partial",
            "products_planned": 3,
            "products_extracted": 2,
            "products_failed": 1,
            "errors": [
                {"code": "ZZZ999", "ok": False, "error_type": "RowNotFound", "error": "No result row contains ZZZ999"},
            ],
            "output_path": "out/records.csv",
        }
        result = self.runner.invoke(
            cli,
            [
                "extract",
                "--input",
                "codes.csv",
                "--output",
                "out/records.csv",
                "--images-dir",
                "out/images",
                "--no-headless",
                "--offset",
                "10",
                "--limit",
                "3",
            ],
        )
        self.assertEqual(result.exit_code, 0)
        self.assertIn("Status: partial", result.output)
        self.assertIn("  - ZZZ999: RowNotFound: No result row contains ZZZ999", result.output)

        kwargs = mock_run_extraction.call_args.kwargs
        self.assertEqual(kwargs["input_path"], "codes.csv")
        self.assertEqual(kwargs["output_path"], "out/records.csv")
        self.assertEqual(kwargs["images_dir"], "out/images")
        self.assertFalse(kwargs["headless"])
        self.assertEqual(kwargs["offset"], 10)
        self.assertEqual(kwargs["limit"], 3)

    @patch("shoplinker_extractor.cli.setup_logging")
    @patch("shoplinker_extractor.cli.ensure_directories")
    @patch("shoplinker_extractor.cli.load_config", return_value={"logging": {}})
    @patch("shoplinker_extractor.cli.run_extraction", side_effect=ConsoleSessionError("Login did not complete"))
    def test_extract_exits_nonzero_on_session_error(self, *_mocks):
        result = self.runner.invoke(cli, ["extract"])
        self.assertEqual(result.exit_code, 1)

    @patch("shoplinker_extractor.cli.load_config", side_effect=FileNotFoundError("Configuration file not found"))
    def test_missing_config_exits_nonzero(self, _mock):
        result = self.runner.invoke(cli, ["extract"])
        self.assertEqual(result.exit_code, 1)


class TestCliCodes(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self.tmp = tempfile.TemporaryDirectory()
        self.input_path = Path(self.tmp.name) / "input.csv"
        self.input_path.write_text("code\nexported\nA1B2C3\n\nD4E5F6\nG7H8I9\n", encoding="utf-8")

    def tearDown(self):
        self.tmp.cleanup()

    @patch("shoplinker_extractor.cli.setup_logging")
    @patch("shoplinker_extractor.cli.ensure_directories")
    @patch("shoplinker_extractor.cli.load_config", return_value={"logging": {}})
    def test_codes_lists_selection(self, *_mocks):
        result = self.runner.invoke(
            cli, ["codes", "--input", str(self.input_path), "--offset", "1", "--limit", "1"]
        )
        self.assertEqual(result.exit_code, 0)
        self.assertIn("2\tD4E5F6", result.output)
        self.assertNotIn("A1B2C3", result.output)

    @patch("shoplinker_extractor.cli.setup_logging")
    @patch("shoplinker_extractor.cli.ensure_directories")
    @patch("shoplinker_extractor.cli.load_config", return_value={"logging": {}})
    def test_codes_missing_input_exits_nonzero(self, *_mocks):
        result = self.runner.invoke(cli, ["codes", "--input", str(Path(self.tmp.name) / "nope.csv")])
        self.assertEqual(result.exit_code, 1)


if __name__ == "__main__":
    unittest.main()
