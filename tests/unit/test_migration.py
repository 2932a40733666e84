"""
Unit tests for the credential vault schema migration, run against SQLite.
"""

import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

MIGRATION_PATH = (
    Path(__file__).resolve().parents[2]
    / "alembic"
    / "versions"
    / "4c1f0e7a9b21_create_credential_vault_tables.py"
)

TABLES = {
    "agents",
    "credential_platform_definitions",
    "user_agent_credentials",
    "credit_purchases",
    "user_credit_balances",
}


@pytest.fixture(scope="module")
def migration():
    spec = importlib.util.spec_from_file_location("create_credential_vault_tables", MIGRATION_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def engine():
    engine = create_engine("sqlite://")
    yield engine
    engine.dispose()


def run(engine, step):
    with engine.begin() as connection:
        context = MigrationContext.configure(connection)
        with Operations.context(context):
            step()


class TestCredentialVaultMigration:
    """Test upgrade and downgrade of the initial revision."""

    def test_revision_is_root(self, migration):
        """Test the revision starts the history."""
        assert migration.revision == "4c1f0e7a9b21"
        assert migration.down_revision is None

    def test_upgrade_creates_tables(self, migration, engine):
        """Test upgrade creates every vault table."""
        run(engine, migration.upgrade)

        assert TABLES <= set(inspect(engine).get_table_names())

    def test_credential_table_shape(self, migration, engine):
        """Test the credential table carries the triple constraint and indexes."""
        run(engine, migration.upgrade)
        inspector = inspect(engine)

        columns = {c["name"] for c in inspector.get_columns("user_agent_credentials")}
        assert {"encrypted_data", "encryption_iv", "encryption_tag", "metadata"} <= columns
        assert {"access_token_encrypted", "refresh_token_encrypted", "token_expires_at"} <= columns

        unique = inspector.get_unique_constraints("user_agent_credentials")
        assert any(
            set(c["column_names"]) == {"user_id", "agent_id", "platform_slug"} for c in unique
        )

        indexes = {i["name"] for i in inspector.get_indexes("user_agent_credentials")}
        assert {
            "ix_user_agent_credentials_user_id",
            "ix_user_agent_credentials_platform",
            "ix_user_agent_credentials_token_expires_at",
        } <= indexes

    def test_matches_models(self, migration, engine):
        """Test the migrated columns match the SQLAlchemy models."""
        from credential_vault.db import Base, import_all_models

        import_all_models()
        run(engine, migration.upgrade)
        inspector = inspect(engine)

        for table_name in TABLES:
            migrated = {c["name"] for c in inspector.get_columns(table_name)}
            modelled = {c.name for c in Base.metadata.tables[table_name].columns}
            assert migrated == modelled, table_name

    def test_downgrade_drops_tables(self, migration, engine):
        """Test downgrade removes everything upgrade created."""
        run(engine, migration.upgrade)
        run(engine, migration.downgrade)

        assert not TABLES & set(inspect(engine).get_table_names())
