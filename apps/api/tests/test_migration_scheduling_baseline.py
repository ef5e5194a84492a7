from __future__ import annotations

import importlib.util
from pathlib import Path

import sqlalchemy as sa
from alembic import command
from alembic.config import Config


API_ROOT = Path(__file__).resolve().parents[1]
MIGRATION_PATH = API_ROOT / "alembic" / "versions" / "0001_scheduling_baseline.py"


def _load_migration_module():
    spec = importlib.util.spec_from_file_location("migration_0001_scheduling_baseline", MIGRATION_PATH)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class _FakeDialect:
    def __init__(self, name):
        self.name = name


class _FakeBind:
    def __init__(self, dialect_name):
        self.dialect = _FakeDialect(dialect_name)


class _FakeOp:
    def __init__(self, dialect_name):
        self._bind = _FakeBind(dialect_name)
        self.tables: list[str] = []
        self.statements: list[str] = []

    def get_bind(self):
        return self._bind

    def create_table(self, name, *_columns, **_kwargs):
        self.tables.append(name)

    def create_index(self, *_args, **_kwargs):
        pass

    def execute(self, statement):
        self.statements.append(str(statement))


def test_postgresql_upgrade_adds_overlap_exclusion(monkeypatch):
    migration = _load_migration_module()
    fake_op = _FakeOp("postgresql")
    monkeypatch.setattr(migration, "op", fake_op)

    migration.upgrade()

    assert "appointments" in fake_op.tables
    sql = "\n".join(fake_op.statements)
    assert "btree_gist" in sql
    assert "ex_appointments_no_overlap" in sql
    assert "tstzrange(date_time, end_time, '[)')" in sql
    assert "'SCHEDULED', 'COMPLETED'" in sql


def test_sqlite_upgrade_skips_exclusion(monkeypatch):
    migration = _load_migration_module()
    fake_op = _FakeOp("sqlite")
    monkeypatch.setattr(migration, "op", fake_op)

    migration.upgrade()

    assert fake_op.tables[-1] == "appointments"
    assert fake_op.statements == []


def test_upgrade_and_downgrade_on_sqlite(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    config = Config(str(API_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(API_ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", url)

    command.upgrade(config, "head")

    engine = sa.create_engine(url)
    try:
        tables = set(sa.inspect(engine).get_table_names())
        assert {"accounts", "clinics", "psychologists", "patients",
                "available_slots", "holidays", "appointments"} <= tables

        command.downgrade(config, "base")
        assert "appointments" not in set(sa.inspect(engine).get_table_names())
    finally:
        engine.dispose()
