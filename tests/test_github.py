"""Tests for the GitHub Actions runner integration."""
import pytest

from yc_function_deploy.deploy.domains import github
from yc_function_deploy.deploy.domains.errors import InputValidationError
from yc_function_deploy.deploy.domains.models import DeployResult


class TestInputs:

    def test_get_input_reads_environment(self, monkeypatch):
        monkeypatch.setenv("INPUT_FUNCTION-NAME", "  my-function ")

        assert github.get_input("function-name") == "my-function"

    def test_get_input_default(self):
        assert github.get_input("source-root", ".") == "."

    def test_multiline_input_drops_blank_lines(self, monkeypatch):
        monkeypatch.setenv("INPUT_INCLUDE", "src\n\n  *.js  \n")

        assert github.get_multiline_input("include") == ["src", "*.js"]

    @pytest.mark.parametrize("value, expected", [("true", True), ("TRUE", True), ("False", False)])
    def test_boolean_input(self, monkeypatch, value, expected):
        monkeypatch.setenv("INPUT_ASYNC", value)

        assert github.get_boolean_input("async") is expected

    def test_boolean_input_rejects_other_values(self, monkeypatch):
        monkeypatch.setenv("INPUT_LOGS-DISABLED", "yes")

        with pytest.raises(InputValidationError):
            github.get_boolean_input("logs-disabled")


class TestOutputs:

    def test_set_output_appends_heredoc(self, runner_files):
        output, _ = runner_files

        github.set_output("function-id", "d4e1")
        github.set_output("version-id", "d4e2")

        lines = output.read_text().splitlines()
        assert lines[0].startswith("function-id<<ghadelimiter_")
        assert lines[1] == "d4e1"
        assert lines[2] == lines[0].split("<<")[1]
        assert lines[3].startswith("version-id<<")

    def test_set_output_without_runner_is_noop(self, tmp_path):
        github.set_output("function-id", "d4e1")

        assert list(tmp_path.iterdir()) == []

    def test_groups_only_in_actions(self, monkeypatch, capsys):
        github.start_group("ZipDirectory")
        github.end_group()
        assert capsys.readouterr().out == ""

        monkeypatch.setenv("GITHUB_ACTIONS", "true")
        github.start_group("ZipDirectory")
        github.end_group()
        assert capsys.readouterr().out == "::group::ZipDirectory\n::endgroup::\n"

    def test_report_error_annotation(self, monkeypatch, capsys):
        monkeypatch.setenv("GITHUB_ACTIONS", "true")

        github.report_error("boom")

        assert capsys.readouterr().out == "::error::boom\n"


class TestSummary:

    def test_success_summary(self):
        result = DeployResult(
            function_name="fn",
            folder_id="b1g",
            function_id="d4e1",
            version_id="d4e2",
            bucket="artifacts",
            bucket_object_name="d4e1/abc.zip",
        )

        assert github.render_summary(result) == (
            "## Yandex Cloud Function Deployment Summary\n"
            "\n"
            "- Function Name: fn\n"
            '- Function ID: <a href="https://console.yandex.cloud/folders/b1g/functions/functions/d4e1/overview">'
            "d4e1</a>\n"
            "- Version ID: d4e2\n"
            "- Bucket: artifacts\n"
            "- Bucket Object: d4e1/abc.zip\n"
            "- ✅ Success\n"
        )

    def test_failure_summary_skips_missing_fields(self):
        result = DeployResult(function_name="fn", folder_id="b1g", error_message="memory has unknown format")

        text = github.render_summary(result)

        assert "Function ID" not in text
        assert "Version ID" not in text
        assert "- ❌ Error: memory has unknown format" in text
        assert "Success" not in text

    def test_write_summary_appends(self, runner_files):
        _, summary = runner_files

        github.write_summary(DeployResult(function_name="fn"))

        assert summary.read_text().startswith("## Yandex Cloud Function Deployment Summary")
