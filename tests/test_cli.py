from __future__ import annotations

import asyncio
import json

import pytest

from planner import cli
from planner.gateway import DATASET_LESSONS, LocalStore, PersistenceGateway


@pytest.fixture
def csv_export(tmp_path):
    path = tmp_path / "reception.csv"
    path.write_text(
        "Lesson Number,Category,Activity Name,Description,Level,Time (Mins),Video,Music,Backing,Resource,Unit Name\n"
        "1,Welcome,Hello,Hi there,All,3,,,,,\n"
        ",Goodbye,Bye,See you,All,2,,,,,\n"
        "2,Welcome,Morning,,All,4,,,,,\n",
        encoding="utf-8",
    )
    return path


def test_parser_accepts_every_command():
    parser = cli.build_parser()

    assert parser.parse_args(["import", "x.csv", "--sheet", "UKG"]).sheet == "UKG"
    assert parser.parse_args(["show"]).sheet == "LKG"
    assert parser.parse_args(["export"]).out == "planner-backup.json"
    assert parser.parse_args(["restore", "b.json"]).path == "b.json"
    assert parser.parse_args(["flush"]).command == "flush"


def test_import_command(gateway, csv_export):
    code = asyncio.run(cli.run_import(gateway, "Reception", str(csv_export)))

    assert code == 0
    assert gateway.read_local(DATASET_LESSONS, "Reception")["lessonNumbers"] == ["1", "2"]


def test_import_missing_file(gateway, tmp_path):
    assert asyncio.run(cli.run_import(gateway, "LKG", str(tmp_path / "missing.csv"))) == 1


def test_show_prints_merged_lessons(gateway, csv_export, capsys):
    asyncio.run(cli.run_import(gateway, "Reception", str(csv_export)))
    capsys.readouterr()

    assert asyncio.run(cli.run_show(gateway, "Reception")) == 0

    out = capsys.readouterr().out
    assert "base data from local" in out
    assert "Lesson 1: Standard Lesson (5 mins)" in out
    assert "Welcome: Hello" in out


def test_export_then_restore(gateway, csv_export, tmp_path):
    asyncio.run(cli.run_import(gateway, "Reception", str(csv_export)))
    backup = tmp_path / "backup.json"

    assert cli.run_export(gateway, str(backup)) == 0
    assert "lesson-data-Reception" in json.loads(backup.read_text(encoding="utf-8"))

    fresh = PersistenceGateway(LocalStore(tmp_path / "fresh"))
    assert cli.run_restore(fresh, str(backup)) == 0
    assert fresh.read_local(DATASET_LESSONS, "Reception")["lessonNumbers"] == ["1", "2"]


def test_restore_rejects_non_object(gateway, tmp_path):
    backup = tmp_path / "backup.json"
    backup.write_text("[]", encoding="utf-8")
    assert cli.run_restore(gateway, str(backup)) == 1


def test_flush_without_pending_writes(gateway):
    assert asyncio.run(cli.run_flush(gateway)) == 0


def test_flush_retries_writes_left_by_an_earlier_run(local_store, fake_remote, csv_export):
    fake_remote.fail = True
    importing = PersistenceGateway(local_store, fake_remote.store(), timeout=5.0)
    asyncio.run(cli.run_import(importing, "Reception", str(csv_export)))
    assert "Reception" not in fake_remote.tables.get("lessons", {})

    fake_remote.fail = False
    flushing = PersistenceGateway(local_store, fake_remote.store(), timeout=5.0)

    assert asyncio.run(cli.run_flush(flushing)) == 0
    assert fake_remote.tables["lessons"]["Reception"]["lessonNumbers"] == ["1", "2"]
    assert flushing.outbox == {}
