from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

import pytest

import lead_importer.cli.__main__ as cli_module
from lead_importer.cli.__main__ import main as cli_main
from lead_importer.logging.init import reset_logging
from lead_importer.models.team import StatusVocabulary, TeamMember

"""Exit code contract: 0 all rows handled, 2 partial failure, 1 fatal."""


@pytest.fixture(autouse=True)
def clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def leads_csv(temp_workdir: Path) -> Path:
    p = temp_workdir / "data" / "leads.csv"
    p.write_text("Email\na@x.com\nb@x.com\nc@x.com\n", encoding="utf-8")
    return p


@pytest.fixture()
def patched_db(monkeypatch, lead_store):
    @contextmanager
    def fake_connection(cfg):
        yield None

    monkeypatch.setattr(cli_module, "_db_connection", fake_connection)
    monkeypatch.setattr(
        cli_module,
        "_open_stores",
        lambda cursor, team_id: (lead_store, [TeamMember(id="u1")], StatusVocabulary(["Opt-in"]), None),
    )
    return lead_store


def test_exit_code_fatal_startup(temp_workdir: Path, leads_csv: Path, capsys):
    # config/import.yml missing -> exit 1
    code = cli_main([str(leads_csv)])
    assert code == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_exit_code_missing_file(write_config, temp_workdir: Path, capsys):
    code = cli_main([str(temp_workdir / "data" / "nope.csv")])
    assert code == 1
    assert "ERROR parse:" in capsys.readouterr().out


def test_exit_code_all_success(write_config, leads_csv, patched_db, capsys):
    assert cli_main([str(leads_csv)]) == 0
    assert "errors=0" in capsys.readouterr().out


def test_exit_code_partial_failure(write_config, leads_csv, patched_db, capsys):
    patched_db.fail_on_chunk = 2
    assert cli_main([str(leads_csv)]) == 2
    out = capsys.readouterr().out
    assert "inserted=2" in out
    assert "errors=1" in out


def test_exit_code_nothing_committed_is_still_partial(write_config, leads_csv, patched_db, capsys):
    patched_db.fail_on_chunk = 1
    assert cli_main([str(leads_csv)]) == 2
    assert "inserted=0" in capsys.readouterr().out
