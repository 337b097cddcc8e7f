import pytest
from click.testing import CliRunner
from openpyxl import load_workbook

import translate_sheet
from conftest import FakeProvider, save_workbook
from core.exceptions import ServiceError


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def dictionary(tmp_path):
    path = tmp_path / "dictionary.txt"
    path.write_text("cat – pisică\n", encoding="utf-8")
    return path


@pytest.fixture
def source(tmp_path):
    return save_workbook(tmp_path / "source.xlsx", [
        ["English", "Notes"],
        ["Cat", "Hello"],
        ["hello", 7],
        ["World", None],
    ])


def test_bad_dictionary_line_aborts_before_reading_source(runner, tmp_path):
    dictionary = tmp_path / "dictionary.txt"
    dictionary.write_text("cat – pisică\ndog - câine\n", encoding="utf-8")

    result = runner.invoke(translate_sheet.main, [
        str(dictionary), str(tmp_path / "does-not-exist.xlsx"), str(tmp_path / "out.xlsx"),
    ], env={"OPENAI_API_KEY": "sk-test"})

    assert result.exit_code == 1
    assert "line #2" in result.output
    assert not (tmp_path / "out.xlsx").exists()


def test_missing_api_key(runner, tmp_path, dictionary, source):
    result = runner.invoke(translate_sheet.main, [
        str(dictionary), str(source), str(tmp_path / "out.xlsx"),
    ], env={"OPENAI_API_KEY": None})

    assert result.exit_code == 1
    assert "API key" in result.output


def test_missing_sheet(runner, tmp_path, dictionary, source):
    result = runner.invoke(translate_sheet.main, [
        str(dictionary), str(source), str(tmp_path / "out.xlsx"), "--sheet", "Foaie",
    ], env={"OPENAI_API_KEY": "sk-test"})

    assert result.exit_code == 1
    assert "No worksheet named 'Foaie'" in result.output


def test_dry_run_reports_without_sending(runner, tmp_path, dictionary, source):
    result = runner.invoke(translate_sheet.main, [
        str(dictionary), str(source), str(tmp_path / "out.xlsx"), "--dry-run",
    ], env={"OPENAI_API_KEY": None})

    assert result.exit_code == 0, result.output
    assert "DRY RUN" in result.output
    assert "Unique requests:    2" in result.output
    assert not (tmp_path / "out.xlsx").exists()


def test_full_run_writes_destination(runner, tmp_path, dictionary, source, monkeypatch):
    provider = FakeProvider({"World": ServiceError("rate limited")})
    monkeypatch.setattr(translate_sheet, "OpenaiCompletionProvider", lambda config: provider)
    destination = tmp_path / "out.xlsx"

    result = runner.invoke(translate_sheet.main, [
        str(dictionary), str(source), str(destination),
        "--interval", "0", "--rpm", "1", "--no-progress",
    ], env={"OPENAI_API_KEY": "sk-test"})

    assert result.exit_code == 0, result.output
    assert len(provider.prompts) == 2

    worksheet = load_workbook(destination)["Worksheet"]
    assert worksheet["A1"].value == "English"
    assert worksheet["A2"].value == "pisică"
    assert worksheet["B2"].value == "RO:Hello"
    assert worksheet["A3"].value == "RO:Hello"
    assert worksheet["B3"].value == 7
    assert worksheet["A4"].value is None
