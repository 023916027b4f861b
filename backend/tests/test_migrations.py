"""
Schema migrations: upgrading an empty database yields the model schema.
"""

from pathlib import Path

import sqlalchemy as sa
from flask_migrate import downgrade, upgrade

from invoicedesk import create_app
from invoicedesk.extensions import db


MIGRATIONS_DIR = str(Path(__file__).resolve().parent.parent / "migrations")


def _migrated_app(tmp_path):
    return create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'migrated.sqlite3'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })


def test_upgrade_creates_model_tables(tmp_path):
    app = _migrated_app(tmp_path)

    with app.app_context():
        upgrade(directory=MIGRATIONS_DIR)
        inspector = sa.inspect(db.engine)

        tables = set(inspector.get_table_names()) - {"alembic_version"}
        assert tables == set(db.metadata.tables)

        for name, table in db.metadata.tables.items():
            migrated = {c["name"] for c in inspector.get_columns(name)}
            assert migrated == set(table.columns.keys()), name


def test_downgrade_drops_everything(tmp_path):
    app = _migrated_app(tmp_path)

    with app.app_context():
        upgrade(directory=MIGRATIONS_DIR)
        downgrade(directory=MIGRATIONS_DIR, revision="base")

        tables = set(sa.inspect(db.engine).get_table_names()) - {"alembic_version"}
        assert tables == set()
