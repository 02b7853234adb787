"""Tests for the entry point's data-removal mode."""

import pytest

from admission_bot.db import build_engine, build_session_factory, init_db
from admission_bot.schemas.session_schema import AdmissionData
from admission_bot.tools.admissions import AdmissionStore
from main import _run_delete_mode, remove_admission
from tests.conftest import PHONE


@pytest.fixture
def database_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'admissions.db'}"
    engine = build_engine(url)
    init_db(engine)
    AdmissionStore(build_session_factory(engine)).create_admission(
        AdmissionData(displayname="Jane Doe", email="jane@example.com", grade="Grade 7", semester="Semester 1"),
        PHONE,
    )
    engine.dispose()
    return url


class TestRemoveAdmission:
    def test_removes_stored_admission(self, database_url):
        assert remove_admission(PHONE, database_url) is True
        assert remove_admission(PHONE, database_url) is False

    def test_unknown_phone(self, database_url):
        assert remove_admission("+15550000000", database_url) is False


class TestDeleteMode:
    def test_reports_deletion(self, database_url, monkeypatch, capsys):
        monkeypatch.setattr("main.remove_admission", lambda phone: remove_admission(phone, database_url))
        _run_delete_mode(PHONE)
        assert capsys.readouterr().out == f"Deleted admission for {PHONE}.\n"

    def test_missing_admission_exits_nonzero(self, database_url, monkeypatch, capsys):
        monkeypatch.setattr("main.remove_admission", lambda phone: remove_admission(phone, database_url))
        with pytest.raises(SystemExit) as exit_info:
            _run_delete_mode("+15550000000")
        assert exit_info.value.code == 1
        assert "No admission found" in capsys.readouterr().out
