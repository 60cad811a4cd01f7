import pytest

from airbook import cli, config


@pytest.fixture
def database(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "configure_logging", lambda level=None: None)
    return f"sqlite+pysqlite:///{tmp_path / 'cli.db'}"


def test_init_db(database, capsys):
    assert cli.main(["--database", database, "init-db"]) == 0
    assert "Database ready" in capsys.readouterr().out


def test_seed_then_search(database, capsys):
    assert cli.main(["--database", database, "seed", "--days", "2", "--start", "2030-06-01"]) == 0
    seeded = capsys.readouterr().out
    assert "| flights" in seeded

    assert cli.main(
        ["--database", database, "search", "VIE", "ZRH", "--departure", "2030-06-01T00:00"]
    ) == 0
    output = capsys.readouterr().out
    assert output.startswith("Outbound")
    assert "VIE > ZRH" in output


def test_round_trip_search_prints_both_directions(database, capsys):
    cli.main(["--database", database, "seed", "--days", "3", "--start", "2030-06-01"])
    capsys.readouterr()

    exit_code = cli.main(
        [
            "--database",
            database,
            "search",
            "VIE",
            "ZRH",
            "--departure",
            "2030-06-01T00:00",
            "--return",
            "2030-06-02T00:00",
        ]
    )

    assert exit_code == 0
    output = capsys.readouterr().out
    assert "Outbound" in output and "Return" in output
    assert "ZRH > VIE" in output


def test_search_error_returns_non_zero(database, capsys):
    exit_code = cli.main(
        ["--database", database, "search", "VIE", "VIE", "--departure", "2030-06-01T00:00"]
    )

    assert exit_code == 1
    assert "Error:" in capsys.readouterr().err


def test_occupied_and_reap(database, capsys):
    cli.main(["--database", database, "init-db"])
    capsys.readouterr()

    assert cli.main(["--database", database, "occupied", "OS101", "--traveler", "alice"]) == 0
    assert "No occupied seats" in capsys.readouterr().out

    assert cli.main(["--database", database, "reap"]) == 0
    assert "Released 0 expired holds" in capsys.readouterr().out


def test_search_accepts_utc_offset(database, capsys):
    cli.main(["--database", database, "seed", "--days", "2", "--start", "2030-06-01"])
    capsys.readouterr()

    exit_code = cli.main(
        ["--database", database, "search", "VIE", "ZRH", "--departure", "2030-06-01T00:00:00+00:00"]
    )

    assert exit_code == 0
    assert "VIE > ZRH" in capsys.readouterr().out
