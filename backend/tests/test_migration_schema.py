import importlib

import sqlalchemy as sa

from app.models.office import Base

MIGRATION = "app.migrations.versions.20261001_000001_init_office_schema"


class _RecordingOps:
    def __init__(self):
        self.tables = {}
        self.dropped = []

    def execute(self, _sql):
        pass

    def create_table(self, name, *items):
        self.tables[name] = {item.name for item in items if isinstance(item, sa.Column)}

    def create_index(self, *_args, **_kwargs):
        pass

    def drop_table(self, name):
        self.dropped.append(name)


def _run(monkeypatch, step):
    module = importlib.import_module(MIGRATION)
    ops = _RecordingOps()
    monkeypatch.setattr(module, "op", ops)
    getattr(module, step)()
    return module, ops


def test_initial_revision_has_no_parent(monkeypatch):
    module, _ops = _run(monkeypatch, "upgrade")
    assert module.down_revision is None


def test_upgrade_creates_every_model_table_with_its_columns(monkeypatch):
    _module, ops = _run(monkeypatch, "upgrade")

    assert set(ops.tables) == set(Base.metadata.tables)
    for name, table in Base.metadata.tables.items():
        assert ops.tables[name] == {column.name for column in table.columns}, name


def test_downgrade_drops_children_before_parents(monkeypatch):
    _module, ops = _run(monkeypatch, "downgrade")

    assert set(ops.dropped) == set(Base.metadata.tables)
    assert ops.dropped[-1] == "organizations"
    assert ops.dropped.index("jobs") < ops.dropped.index("subscriptions")
    assert ops.dropped.index("users") < ops.dropped.index("organizations")
    assert ops.dropped.index("subscriptions") < ops.dropped.index("service_plans")
