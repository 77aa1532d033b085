import json

import pytest

import main
from fakes import CFG, FakeDb, fake_repositories
from shopledger.config import ConfigError
from shopledger.ledger import build_ledger


@pytest.fixture
def cli(monkeypatch, db, admin):
    monkeypatch.setattr(main, "load_config", lambda path: CFG)
    monkeypatch.setattr(main, "configure_logging", lambda level: None)
    monkeypatch.setattr(main, "Db", lambda cfg: db)
    monkeypatch.setattr(main, "build_ledger", lambda db, cfg: build_ledger(db, cfg, fake_repositories()))
    return main.main


class TestImportCatalog:
    def test_prints_prices(self, cli, store, tmp_path, capsys):
        path = tmp_path / "services.json"
        path.write_text(
            json.dumps([{"name": "Setup", "defaultPrice": "1 500 ₽"}, {"name": "Soldering", "defaultPriceCents": 50000}]),
            encoding="utf-8",
        )

        assert cli(["import-catalog", str(path), "1"]) == 0

        out = capsys.readouterr().out
        assert "Imported 2 services" in out
        assert "Setup: 1 500,00 ₽" in out
        assert "Soldering: 500,00 ₽" in out
        assert len(store.tables["services"]) == 2

    def test_ledger_errors_exit_1(self, cli, tmp_path, capsys):
        assert cli(["import-catalog", str(tmp_path / "missing.json"), "1"]) == 1
        assert "[ERROR]" in capsys.readouterr().out

    @pytest.mark.parametrize("argv", [[], ["drop-db"], ["import-catalog", "x.json"], ["import-catalog", "x.json", "me"]])
    def test_usage(self, cli, argv, capsys):
        assert cli(argv) == 1
        assert "usage" in capsys.readouterr().out


class TestExitCodes:
    def test_config_error(self, monkeypatch, capsys):
        def broken(path):
            raise ConfigError("Config file not found: config.toml")

        monkeypatch.setattr(main, "load_config", broken)

        assert main.main(["init-db"]) == 2
        assert "[CONFIG ERROR]" in capsys.readouterr().out

    def test_init_db_runs_schema_in_one_transaction(self, cli, store, tmp_path, monkeypatch):
        schema = tmp_path / "schema.sql"
        schema.write_text("CREATE TABLE t (id int);", encoding="utf-8")
        executed = []
        monkeypatch.setattr(store, "execute", executed.append, raising=False)

        assert cli(["init-db", str(schema)]) == 0
        assert executed == ["CREATE TABLE t (id int);"]
        assert store.commits == 1
