"""
CLI interface tests for depfile-tools.
Tests the command-line interface and main entry points.
"""

import json
import logging

from click.testing import CliRunner

from depfile_tools.error_handling import get_error_handler
from depfile_tools.main import cli
from depfile_tools.structured_logging import get_depfile_logger


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "depfile-tools" in result.output.lower()

    def test_cli_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_no_command_shows_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, [])

        assert result.exit_code == 0
        assert "parse" in result.output

    def test_info_command(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["info"])

        assert result.exit_code == 0
        assert "uri-list" in result.output


class TestParseCommand:
    """Test the parse command."""

    def test_parse_depfile(self, sample_depfile):
        runner = CliRunner()
        result = runner.invoke(cli, ["parse", str(sample_depfile)])

        assert result.exit_code == 0
        assert "out/main.js" in result.output
        assert "src/util.dart" in result.output
        assert "2 output(s), 3 input(s)" in result.output

    def test_parse_json_output(self, sample_depfile):
        runner = CliRunner()
        result = runner.invoke(cli, ["parse", str(sample_depfile), "--output-format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["dialect"] == "make"
        assert data["outputs"] == ["out/main.js", "out/main.js.map"]
        assert data["inputs"] == ["src/main.dart", "src/util.dart", "lib/a.dart"]

    def test_parse_json_output_file(self, sample_depfile, temp_dir):
        output_file = temp_dir / "result.json"

        runner = CliRunner()
        result = runner.invoke(cli, [
            "parse", str(sample_depfile),
            "--output-format", "json",
            "--output-file", str(output_file),
        ])

        assert result.exit_code == 0
        assert json.loads(output_file.read_text())["source"] == str(sample_depfile)

    def test_output_file_requires_json(self, sample_depfile, temp_dir):
        runner = CliRunner()
        result = runner.invoke(cli, [
            "parse", str(sample_depfile), "--output-file", str(temp_dir / "r.json"),
        ])

        assert result.exit_code != 0
        assert "json" in result.output.lower()

    def test_parse_uri_list(self, sample_uri_list):
        runner = CliRunner()
        result = runner.invoke(cli, [
            "parse", str(sample_uri_list),
            "--dialect", "uri-list",
            "--output", "foo.dart.js",
            "--path-style", "posix",
            "--output-format", "json",
        ])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["outputs"] == ["foo.dart.js"]
        assert data["inputs"][0] == "/Users/foo/collection.dart"
        assert len(data["inputs"]) == 3

    def test_uri_list_requires_output(self, sample_uri_list):
        runner = CliRunner()
        result = runner.invoke(cli, ["parse", str(sample_uri_list), "--dialect", "uri-list"])

        assert result.exit_code != 0
        assert "--output is required" in result.output

    def test_output_rejected_for_make_dialect(self, sample_depfile):
        runner = CliRunner()
        result = runner.invoke(cli, ["parse", str(sample_depfile), "--output", "x.js"])

        assert result.exit_code != 0

    def test_unescape_option(self, temp_dir):
        depfile = temp_dir / "spaces.d"
        depfile.write_text("out.js: /Hello\\ Flutter/a.txt\n")

        runner = CliRunner()
        result = runner.invoke(cli, [
            "parse", str(depfile), "--unescape", "--output-format", "json",
        ])

        assert result.exit_code == 0
        assert json.loads(result.output)["inputs"] == ["/Hello Flutter/a.txt"]

    def test_malformed_depfile_is_not_an_error(self, malformed_depfile):
        runner = CliRunner()
        result = runner.invoke(cli, ["parse", str(malformed_depfile)])

        assert result.exit_code == 0
        assert "no dependencies found" in result.output.lower()

    def test_fail_on_empty(self, malformed_depfile):
        runner = CliRunner()
        result = runner.invoke(cli, ["parse", str(malformed_depfile), "--quiet", "--fail-on-empty"])

        assert result.exit_code == 1

    def test_parse_nonexistent_file(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["parse", "nonexistent.d"])

        assert result.exit_code != 0
        assert "does not exist" in result.output.lower()

    def test_file_too_large(self, sample_depfile, monkeypatch):
        monkeypatch.setenv("DEPFILE_TOOLS_MAX_FILE_SIZE_MB", "1")
        sample_depfile.write_text("a.txt: " + "b" * (1024 * 1024 + 1) + "\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["parse", str(sample_depfile)])

        assert result.exit_code != 0
        assert "too large" in result.output.lower()

    def test_dialect_from_environment(self, sample_uri_list, monkeypatch):
        monkeypatch.setenv("DEPFILE_TOOLS_DIALECT", "uri-list")

        runner = CliRunner()
        result = runner.invoke(cli, [
            "parse", str(sample_uri_list), "--output", "foo.dart.js", "-f", "json",
            "--path-style", "posix",
        ])

        assert result.exit_code == 0
        assert json.loads(result.output)["dialect"] == "uri-list"


class TestWritingCommands:
    """Test the convert and write commands."""

    def test_convert(self, sample_uri_list, temp_dir):
        destination = temp_dir / "foo.d"

        runner = CliRunner()
        result = runner.invoke(cli, [
            "convert", str(sample_uri_list), "foo.dart.js",
            "--depfile", str(destination),
            "--path-style", "posix",
        ])

        assert result.exit_code == 0
        assert destination.read_text() == (
            "foo.dart.js: /Users/foo/collection.dart /Users/foo/algorithms.dart "
            "/Users/foo/canonicalized_map.dart\n"
        )

    def test_write(self, temp_dir):
        destination = temp_dir / "out.d"

        runner = CliRunner()
        result = runner.invoke(cli, [
            "write",
            "-i", "/Hello Flutter/a.txt",
            "-i", "/src/b.txt",
            "-o", "/Hello Flutter/out.js",
            "--depfile", str(destination),
        ])

        assert result.exit_code == 0
        assert destination.read_text() == (
            "/Hello\\ Flutter/out.js: /Hello\\ Flutter/a.txt /src/b.txt\n"
        )
        assert "Wrote depfile" in result.output

    def test_write_into_missing_directory(self, temp_dir):
        runner = CliRunner()
        result = runner.invoke(cli, [
            "write", "-i", "a", "-o", "b", "--depfile", str(temp_dir / "no" / "such.d"),
        ])

        assert result.exit_code == 1
        assert "failed to write depfile" in result.output.lower()


class TestConfigCommands:
    """Test configuration management commands."""

    def test_config_init(self, temp_dir):
        path = temp_dir / "config.json"

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "init", "--path", str(path)])

        assert result.exit_code == 0
        assert json.loads(path.read_text())["parse"]["dialect"] == "make"

    def test_config_init_does_not_overwrite(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text("{}")

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "init", "--path", str(path)])

        assert result.exit_code == 0
        assert "already exists" in result.output
        assert path.read_text() == "{}"

    def test_config_show(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "Dialect: make" in result.output

    def test_config_validate_valid(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"parse": {"unescape": True}}))

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(path)])

        assert result.exit_code == 0
        assert "valid" in result.output

    def test_config_validate_invalid(self, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text("parse:\n  dialect: ninja\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(path)])

        assert result.exit_code != 0
        assert "parse.dialect" in result.output

    def test_mistyped_config_does_not_break_commands(self, sample_depfile):
        with open(".depfile-tools.yaml", "w", encoding="utf-8") as f:
            f.write("logging:\n  log_level: 10\nsecurity:\n  max_file_size_mb: '10'\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["parse", str(sample_depfile), "-f", "json"])

        assert result.exit_code == 0, result.output
        assert "out/main.js.map" in result.output
        assert "max_file_size_mb" in result.output

    def test_config_validate_reports_wrong_types(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"security": {"max_file_size_mb": "10"}}))

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(path)])

        assert result.exit_code != 0
        assert "security.max_file_size_mb" in result.output

    def test_configured_log_format_reaches_loggers(self, sample_depfile):
        with open(".depfile-tools.json", "w", encoding="utf-8") as f:
            json.dump(
                {"logging": {"log_format": "%(levelname)s:%(message)s", "enable_json": False}},
                f,
            )

        runner = CliRunner()
        result = runner.invoke(cli, ["parse", str(sample_depfile)])

        assert result.exit_code == 0
        record = logging.makeLogRecord({"msg": "depfile_written", "levelname": "INFO"})
        for logger in (get_depfile_logger().logger, get_error_handler().logger.logger):
            for handler in logger.handlers:
                assert handler.formatter.format(record) == "INFO:depfile_written"
