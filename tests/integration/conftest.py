"""
統合テスト用のフィクスチャ

POSTGRES_TEST_DSN が設定されている場合のみ実行される。
"""
import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from schema_migrator import MigratorConfig, SchemaMigrationManager

TEST_SCHEMA = "migrator_it"

SETUP_STATEMENTS = (
    f"DROP SCHEMA IF EXISTS {TEST_SCHEMA} CASCADE",
    f"CREATE SCHEMA {TEST_SCHEMA}",
    f"""CREATE TABLE {TEST_SCHEMA}.individuals (
        id integer GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
        first_name varchar(100) NOT NULL,
        last_name varchar(100),
        legacy_notes text
    )""",
    f"""CREATE TABLE {TEST_SCHEMA}.events (
        id integer GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
        name varchar(200) NOT NULL,
        event_date date
    )""",
    f"INSERT INTO {TEST_SCHEMA}.individuals (first_name) VALUES ('Ada'), ('Grace')",
)


def get_test_config(tmp_path) -> MigratorConfig:
    """テスト用の設定を取得"""
    return MigratorConfig(
        postgres_dsn=os.environ["POSTGRES_TEST_DSN"],
        schema_name=TEST_SCHEMA,
        step_retry_delay=0,
        backup_dir=str(tmp_path / "backups"),
    )


@pytest.fixture(autouse=True)
def require_postgres():
    if not os.getenv("POSTGRES_TEST_DSN"):
        pytest.skip("POSTGRES_TEST_DSN is not set")


@pytest_asyncio.fixture
async def manager(tmp_path) -> AsyncGenerator[SchemaMigrationManager, None]:
    """テスト用スキーマを作り直した SchemaMigrationManager を提供"""
    manager = SchemaMigrationManager(get_test_config(tmp_path))
    await manager.postgres.connect_with_retry()
    for statement in SETUP_STATEMENTS:
        await manager.postgres.execute(statement)
    await manager.postgres.disconnect()

    async with manager:
        yield manager
        await manager.postgres.execute(f"DROP SCHEMA IF EXISTS {TEST_SCHEMA} CASCADE")
