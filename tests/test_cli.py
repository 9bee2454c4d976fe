import json
import os

import pytest
from typer.testing import CliRunner

from azure_sku_migrator import __version__
from azure_sku_migrator.cli import main as cli_main
from azure_sku_migrator.core.errors import ProviderError, ProviderErrorCode

runner = CliRunner()


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch, fake_client):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in list(os.environ):
        if key.startswith("AZURE_SKU_MIGRATOR_"):
            monkeypatch.delenv(key)
    monkeypatch.setattr(cli_main, "build_provider_client", lambda config: fake_client)
    return tmp_path


def migrate(*args, input=None):
    base = ["migrate", "--delay", "0", "--backup-dir", "backups", "--output", "report.json"]
    return runner.invoke(cli_main.app, base + list(args), input=input)


def read_report(workspace):
    return json.loads((workspace / "report.json").read_text())


def test_migrate_single_resource(fake_client, workspace):
    pip = fake_client.add_pip("pip1")

    result = migrate(pip, "--force")

    assert result.exit_code == 0, result.output
    summary = read_report(workspace)["summary"]
    assert summary["succeeded"] == 1
    assert summary["exit_code"] == 0
    assert list((workspace / "backups").rglob("*.json"))
    assert fake_client.resources[pip]["sku"] == "Standard"


def test_malformed_identifier_is_a_usage_error(fake_client):
    result = migrate("/subscriptions/abc/resourceGroups")

    assert result.exit_code == 1
    assert fake_client.calls == []


def test_identifier_or_batch_file_is_required():
    result = migrate()

    assert result.exit_code == 1


def test_batch_failure_exits_nonzero(fake_client, workspace):
    vm = fake_client.add_vm("vm1")
    pip = fake_client.add_pip("pip1")
    lb = fake_client.add_lb("lb1", frontend_pips=[pip])
    fake_client.script_failure("create_replacement_resource", lb, ProviderError(ProviderErrorCode.CONFLICT, "busy"))
    batch_file = workspace / "batch.txt"
    batch_file.write_text("\n".join(["# legacy", pip, vm, lb, "garbage"]) + "\n")

    result = migrate("--batch-file", str(batch_file), "--force")

    assert result.exit_code == 1
    data = read_report(workspace)
    assert [r["state"] for r in data["results"]] == ["Succeeded", "Failed", "Pending"]
    assert data["rejections"][0]["line_number"] == 5


def test_dry_run_changes_nothing(fake_client, workspace):
    pip = fake_client.add_pip("pip1")

    result = migrate(pip, "--dry-run")

    assert result.exit_code == 0
    assert fake_client.write_calls == []
    assert not (workspace / "backups").exists()
    assert read_report(workspace)["dry_run"] is True


def test_declining_the_prompt_migrates_nothing(fake_client, workspace):
    pip = fake_client.add_pip("pip1")

    result = migrate(pip, input="n\n")

    assert result.exit_code == 0
    assert fake_client.write_calls == []
    assert read_report(workspace)["summary"]["not_attempted"] == 1


def test_csv_and_html_reports(fake_client, workspace):
    pip = fake_client.add_pip("pip1")

    result = runner.invoke(cli_main.app, [
        "migrate", pip, "--force", "--delay", "0", "--backup-dir", "backups",
        "--format", "csv", "--output", "out/report.csv", "--html-report", "out/report.html",
    ])

    assert result.exit_code == 0, result.output
    assert (workspace / "out" / "report.csv").read_text().startswith("Resource ID")
    assert "pip1" in (workspace / "out" / "report.html").read_text()


def test_invalid_configuration_is_a_usage_error(fake_client):
    pip = fake_client.add_pip("pip1")

    result = runner.invoke(cli_main.app, ["migrate", pip, "--delay=-1"])

    assert result.exit_code == 1


def test_plan_shows_order_without_writes(fake_client):
    pip = fake_client.add_pip("pip1")
    lb = fake_client.add_lb("lb1", frontend_pips=[pip])
    batch = [pip, lb]

    result = runner.invoke(cli_main.app, ["plan", "--batch-file", write_batch(batch)])

    assert result.exit_code == 0, result.output
    assert result.output.index("lb1") < result.output.index("pip1")
    assert fake_client.write_calls == []


def write_batch(lines):
    with open("batch.txt", "w") as f:
        f.write("\n".join(lines))
    return "batch.txt"


def test_init_config(workspace):
    result = runner.invoke(cli_main.app, ["init-config", "sample.yml"])

    assert result.exit_code == 0
    assert (workspace / "sample.yml").exists()
    assert runner.invoke(cli_main.app, ["init-config", "sample.yml"]).exit_code == 1


def test_version():
    result = runner.invoke(cli_main.app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_interrupt_exits_with_failure(monkeypatch):
    def interrupted():
        raise KeyboardInterrupt

    monkeypatch.setattr(cli_main, "app", interrupted)

    with pytest.raises(SystemExit) as excinfo:
        cli_main.main()

    assert excinfo.value.code == 1
