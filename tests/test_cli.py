"""Tests for the command line interface."""
import io
import zipfile
from argparse import Namespace
from unittest import mock

import pytest

from yc_function_deploy import __version__
from yc_function_deploy.cli import main as cli
from yc_function_deploy.cli.validators import validate_concurrency, validate_function_name
from yc_function_deploy.deploy.domains.models import DeployResult


def run(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(argv)
    return exc_info.value.code


class TestValidators:

    @pytest.mark.parametrize("name", ["fn", "my-function", "api-v2", "a" * 63])
    def test_valid_function_names(self, name):
        validate_function_name(name)

    @pytest.mark.parametrize("name", ["My_Function", "2fast", "trailing-", "a" * 64, ""])
    def test_invalid_function_names(self, name, capsys):
        with pytest.raises(SystemExit) as exc_info:
            validate_function_name(name)

        assert exc_info.value.code == 2
        assert "Invalid function name" in capsys.readouterr().err

    def test_concurrency_must_be_positive(self):
        with pytest.raises(SystemExit) as exc_info:
            validate_concurrency(0)

        assert exc_info.value.code == 2


class TestCommands:

    def test_version(self, capsys):
        cli.main(["version"])

        assert capsys.readouterr().out.strip() == f"yc-function-deploy {__version__}"

    def test_no_command_prints_help(self, capsys):
        assert run([]) == 2
        assert "usage" in capsys.readouterr().out.lower()

    def test_zip_writes_archive(self, tmp_path, capsys):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "index.py").write_text("print('hi')\n")
        (tmp_path / "src" / "readme.txt").write_text("hi\n")
        output = tmp_path / "out.zip"

        cli.main(["zip", "--source-root", str(tmp_path / "src"), "--include", ".",
                  "--exclude", "*.txt", "-o", str(output)])

        with zipfile.ZipFile(io.BytesIO(output.read_bytes())) as zf:
            assert zf.namelist() == ["index.py"]
        out = capsys.readouterr().out
        assert "Entries: 1" in out

    def test_secrets_parse(self, capsys):
        cli.main(["secrets", "parse", "DB=e6q1/latest/password"])

        assert capsys.readouterr().out.strip() == "DB=e6q1/latest/password"

    def test_secrets_parse_broken_reference_is_usage_error(self, capsys):
        assert run(["secrets", "parse", "123=id"]) == 2
        assert "Broken reference to Lockbox Secret: 123=id" in capsys.readouterr().err

    def test_secrets_without_subcommand(self):
        assert run(["secrets"]) == 2

    def test_secrets_resolve(self, capsys):
        client = mock.Mock()
        client.get_secret.return_value = mock.Mock(current_version_id="v3")

        with mock.patch.object(cli, "_client", return_value=client):
            cli.main(["secrets", "resolve", "--folder-id", "b1g", "--yc-iam-token", "t1.token",
                      "DB=e6q1/latest/password", "TOKEN=e6q2/v1/token"])

        assert capsys.readouterr().out.splitlines() == [
            "DB=e6q1/v3/password",
            "TOKEN=e6q2/v1/token",
        ]
        client.get_secret.assert_called_once_with("e6q1")

    def test_deploy_missing_inputs_is_usage_error(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(cli, "_load_config_if_needed", lambda needed: None)

        assert run(["deploy", "--function-name", "fn"]) == 2
        assert "Input required and not supplied" in capsys.readouterr().err

    def test_deploy_runs_workflow(self, monkeypatch, capsys):
        client = object()
        monkeypatch.setattr(cli, "_client", lambda credentials: client)
        result = DeployResult(function_name="fn", function_id="d4e1", version_id="ver1")

        with mock.patch("yc_function_deploy.deploy.workflows.deploy_function.deploy",
                        return_value=result) as deploy:
            cli.main(["deploy", "--folder-id", "b1g", "--function-name", "fn", "--runtime", "python312",
                      "--entrypoint", "index.handler", "--yc-iam-token", "t1.token"])

        passed_client, inputs, credentials = deploy.call_args[0]
        assert passed_client is client
        assert inputs.function_name == "fn"
        assert credentials.iam_token == "t1.token"
        assert "Function d4e1: version ver1 created" in capsys.readouterr().out

    def test_runtime_error_exit_code(self, monkeypatch, capsys):
        monkeypatch.setattr(cli, "_load_config_if_needed", lambda needed: None)

        assert run(["deploy", "--folder-id", "b1g", "--function-name", "fn", "--runtime", "python312",
                    "--entrypoint", "index.handler"]) == 1
        assert "Error: No credentials" in capsys.readouterr().err


class TestSecretsResolveArguments:

    def test_concurrency_validated(self):
        args = Namespace(concurrency=0, references=["A=a/latest/k"], folder_id="b1g")

        with pytest.raises(SystemExit) as exc_info:
            cli.cmd_secrets_resolve(args)

        assert exc_info.value.code == 2
