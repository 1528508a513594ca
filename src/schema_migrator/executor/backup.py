"""Advisory pre-migration backups written as JSON logical exports."""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from schema_migrator.catalog.base import SchemaCatalog
from schema_migrator.connections.postgres import PostgresConnection
from schema_migrator.dialect import quote_table
from schema_migrator.exceptions import SchemaMigratorError

logger = logging.getLogger(__name__)


class BackupWriter:
    """Exports every non-empty, non-system table before a migration runs.

    A backup is advisory: a failure is logged and the migration proceeds
    without one. It does not replace the plan's rollback steps.
    """

    def __init__(
        self,
        connection: PostgresConnection,
        catalog: SchemaCatalog,
        backup_dir: str | Path = "backups",
        schema_name: str | None = None,
    ):
        self.connection = connection
        self.catalog = catalog
        self.backup_dir = Path(backup_dir)
        self.schema_name = schema_name

    def path_for(self, execution_id: str) -> Path:
        return self.backup_dir / f"migration_backup_{execution_id}.json"

    async def create(self, execution_id: str) -> str | None:
        """Write a backup for an execution.

        Returns:
            Path of the backup file, or None if it could not be written
        """
        path = self.path_for(execution_id)
        logger.info("Creating database backup: %s", path)

        try:
            tables = await self._export_tables()
            document = {
                "execution_id": execution_id,
                "created_at": datetime.now().isoformat(),
                "tables": tables,
            }
            payload = json.dumps(document, indent=2, default=str)
            await asyncio.to_thread(self._write, path, payload)
        except (SchemaMigratorError, OSError) as e:
            logger.warning("Backup creation failed, continuing without backup: %s", e)
            return None

        logger.info("Backup written to %s (%d tables)", path, len(tables))
        return str(path)

    async def _export_tables(self) -> dict[str, Any]:
        snapshot = await self.catalog.get_full_schema()
        tables = {}
        for name in snapshot.table_names:
            row_count = await self.catalog.get_table_row_count(name)
            if row_count == 0:
                continue
            rows = await self.connection.fetch_all(
                f"SELECT * FROM {quote_table(name, self.schema_name)}"
            )
            tables[name] = {
                "create_statement": await self.catalog.get_create_table_statement(name),
                "row_count": row_count,
                "rows": rows,
            }
        return tables

    @staticmethod
    def _write(path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(payload)
