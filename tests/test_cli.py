"""
Tests for the command line interface.
"""

import pytest

import main


@pytest.fixture
def run(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    db_path = str(tmp_path / "cli.db")

    def invoke(*args):
        code = main.main(["--db", db_path, *args])
        captured = capsys.readouterr()
        return code, captured.out, captured.err

    return invoke


def test_init_and_add(run):
    code, out, _ = run("init", "Bob", "World")
    assert code == 0
    assert "Bob [person]" in out
    assert "World [abstract] Root" in out

    code, out, _ = run("add", "Alice", "--kind", "person")
    assert code == 0
    assert "Alice [person] Active(" in out

    code, out, _ = run("show", "Alice")
    assert "sponsor: Bob" in out


def test_schedule_and_health(run):
    run("init", "Bob", "World")
    run("add", "Alice")
    run("schedule", "Alice", "--note", "call", "--date", "01.02.2024")

    code, out, _ = run("health", "--date", "2024-02-20")
    assert code == 0
    assert out.startswith("overdue")
    assert "Alice" in out

    code, out, _ = run("agenda", "--date", "2024-01-30", "--window", "1w")
    assert "Alice" in out


def test_connect_and_events(run):
    run("init", "Bob", "World")
    run("add", "Alice")

    code, out, _ = run("connect", "Bob", "Alice", "friend", "--mutual")
    assert code == 0
    assert "Bob -[friend]<-> Alice" in out

    code, out, _ = run("events", "Alice", "--label", "connected")
    assert "log:connected" in out

    code, _, err = run("disconnect", "Bob", "Alice", "colleague")
    assert code == 1
    assert "Error:" in err


def test_errors_are_reported(run):
    run("init", "Bob", "World")

    code, _, err = run("init", "Bob", "World")
    assert code == 1
    assert "Error:" in err

    code, _, err = run("show", "Nobody")
    assert code == 1

    code, _, err = run("add", "Other", "--root")
    assert code == 1
    assert "Root" in err


def test_sponsor_cycle_rejected(run):
    run("init", "Bob", "World")
    run("add", "Alice")
    run("add", "Carol", "--sponsor", "Alice")

    code, _, err = run("sponsor", "Alice", "Carol")
    assert code == 1
    assert "Error:" in err


def test_export_and_import(run, tmp_path):
    run("init", "Bob", "World")
    run("add", "Alice")
    export_path = str(tmp_path / "out.jsonl")

    code, out, _ = run("export", export_path)
    assert code == 0
    assert "records exported" in out

    other_db = str(tmp_path / "other.db")
    assert main.main(["--db", other_db, "import", export_path]) == 0
    assert main.main(["--db", other_db, "import", export_path]) == 1


def test_invalid_window(run):
    with pytest.raises(SystemExit):
        run("agenda", "--window", "soon")


def test_empty_label_is_reported(run):
    run("init", "Bob", "World")
    run("add", "Alice")

    code, _, err = run("connect", "Bob", "Alice", "")
    assert code == 1
    assert "Error:" in err
