"""Tests for CLI module."""

import json
from pathlib import Path

import pytest

from status_tracker.cli import cmd_init, cmd_version, get_default_db_path, main


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "status.db"


def run(capsys, db_path: Path, *argv: str):
    """Run the CLI against ``db_path`` and return (exit code, stdout)."""
    result = main(["--database", str(db_path), *argv])
    return result, capsys.readouterr().out


def run_json(capsys, db_path: Path, *argv: str):
    result, out = run(capsys, db_path, *argv)
    assert result == 0, out
    return json.loads(out)


class TestGetDefaultDbPath:
    def test_returns_path_in_home_directory(self):
        result = get_default_db_path()

        assert isinstance(result, Path)
        assert ".status_tracker" in str(result)
        assert result.name == "status.db"


class TestCmdInit:
    def test_creates_new_database(self, db_path, capsys):
        class Args:
            database = str(db_path)
            force = False

        result = cmd_init(Args())

        assert result == 0
        assert db_path.exists()
        assert "Initialized database" in capsys.readouterr().out

    def test_refuses_to_overwrite_existing_without_force(self, db_path, capsys):
        db_path.touch()

        class Args:
            database = str(db_path)
            force = False

        result = cmd_init(Args())

        assert result == 1
        assert "already exists" in capsys.readouterr().out

    def test_overwrites_existing_with_force(self, db_path, capsys):
        run_json(capsys, db_path, "create", "--client-id", "client123")

        class Args:
            database = str(db_path)
            force = True

        result = cmd_init(Args())

        assert result == 0
        assert run_json(capsys, db_path, "list-client", "client123") == []


class TestCreateAndGet:
    def test_create_prints_status(self, db_path, capsys):
        status = run_json(
            capsys,
            db_path,
            "create",
            "--client-id",
            "client123",
            "--tracking-id",
            "ST-A7B3C-230615",
            "--summary",
            "Creating retirement plan",
        )

        assert status["tracking_id"] == "ST-A7B3C-230615"
        assert status["current_stage"] == "initiated"
        assert status["version"] == 1

    def test_create_with_json_fields(self, db_path, capsys):
        status = run_json(
            capsys,
            db_path,
            "create",
            "--client-id",
            "client123",
            "--fields",
            '{"statusType": "fund_transfer", "tags": {"desk": "ops"}}',
        )

        assert status["status_type"] == "fund_transfer"
        assert status["tags"] == {"desk": "ops"}

    def test_create_without_client_fails(self, db_path, capsys):
        result, out = run(capsys, db_path, "create", "--summary", "orphan")

        assert result == 1
        assert "Error:" in out
        assert "client_id" in out

    def test_get_by_each_key(self, db_path, capsys):
        created = run_json(
            capsys, db_path, "create", "--client-id", "client123", "--source-id", "crm-7"
        )

        by_id = run_json(capsys, db_path, "get", "--id", created["status_id"])
        by_tracking = run_json(capsys, db_path, "get", "--tracking-id", created["tracking_id"])
        by_source = run_json(capsys, db_path, "get", "--source-id", "crm-7")

        assert by_id == by_tracking == by_source == created

    def test_get_missing(self, db_path, capsys):
        result, out = run(capsys, db_path, "get", "--tracking-id", "ST-NOPE0-230615")

        assert result == 1
        assert "Status not found" in out

    def test_duplicate_tracking_id(self, db_path, capsys):
        run_json(capsys, db_path, "create", "--client-id", "a", "--tracking-id", "ST-AAAAA-230615")

        result, out = run(
            capsys, db_path, "create", "--client-id", "b", "--tracking-id", "ST-AAAAA-230615"
        )

        assert result == 1
        assert "Duplicate tracking_id" in out


class TestUpdateAndHistory:
    def test_update_and_history(self, db_path, capsys):
        created = run_json(capsys, db_path, "create", "--client-id", "client123")

        updated = run_json(
            capsys,
            db_path,
            "update",
            created["status_id"],
            "--by",
            "advisor456",
            "--expected-version",
            "1",
            "--stage",
            "in_progress",
            "--reason",
            "Kickoff call held",
        )
        history = run_json(capsys, db_path, "history", created["status_id"])

        assert updated["version"] == 2
        assert updated["last_updated_by"] == "advisor456"
        assert len(history) == 1
        assert history[0]["previous_stage"] == "initiated"
        assert history[0]["new_stage"] == "in_progress"
        assert history[0]["change_reason"] == "Kickoff call held"

    def test_stale_version(self, db_path, capsys):
        created = run_json(capsys, db_path, "create", "--client-id", "client123")
        run_json(capsys, db_path, "update", created["status_id"], "--by", "a", "--stage", "on_hold")

        result, out = run(
            capsys,
            db_path,
            "update",
            created["status_id"],
            "--by",
            "b",
            "--expected-version",
            "1",
            "--summary",
            "late",
        )

        assert result == 1
        assert "Version conflict" in out

    def test_invalid_fields_json(self, db_path, capsys):
        created = run_json(capsys, db_path, "create", "--client-id", "client123")

        result, out = run(
            capsys, db_path, "update", created["status_id"], "--by", "a", "--fields", "{oops"
        )

        assert result == 1
        assert "Error:" in out


class TestListAndSearch:
    def test_list_client(self, db_path, capsys):
        run_json(capsys, db_path, "create", "--client-id", "client123", "--type", "fund_transfer")
        run_json(capsys, db_path, "create", "--client-id", "client123", "--type", "tax_document")
        run_json(capsys, db_path, "create", "--client-id", "other")

        everything = run_json(capsys, db_path, "list-client", "client123")
        transfers = run_json(
            capsys, db_path, "list-client", "client123", "--type", "fund_transfer"
        )

        assert len(everything) == 2
        assert [s["status_type"] for s in transfers] == ["fund_transfer"]

    def test_search_text(self, db_path, capsys):
        match = run_json(
            capsys, db_path, "create", "--client-id", "c1", "--summary", "Creating retirement plan"
        )
        run_json(capsys, db_path, "create", "--client-id", "c2", "--summary", "Address change")

        results = run_json(capsys, db_path, "search", "--text", "retirement")

        assert [s["status_id"] for s in results] == [match["status_id"]]


class TestVersionAndHelp:
    def test_version(self, capsys):
        result = cmd_version(None)

        assert result == 0
        assert "Status Tracker v0.1.0" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        result = main([])

        assert result == 0
        assert "status-tracker" in capsys.readouterr().out
