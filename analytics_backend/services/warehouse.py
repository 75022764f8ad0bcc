from __future__ import annotations

import asyncio
from threading import Lock
from typing import Any, Dict, List, Optional

import duckdb
from google.cloud import bigquery

from analytics_backend.config import Settings, settings
from analytics_backend.errors import ConfigurationError
from analytics_backend.utils.dataframe_utils import json_safe_records, records_from_dataframe
from analytics_backend.utils.logger import logger


class Warehouse:
    """Query and metadata capability of a SQL warehouse.

    Clients are built lazily, at most once, on first use. Blocking SDK calls
    run in worker threads so the event loop stays free.
    """

    name = "warehouse"

    def __init__(self, config: Settings = settings) -> None:
        self._config = config
        self._client: Any = None
        self._lock = Lock()

    def ensure_initialized(self) -> Any:
        if self._client is not None:
            return self._client
        with self._lock:
            if self._client is None:
                self._client = self._connect()
                logger.info("Initialized %s warehouse client", self.name)
        return self._client

    def _connect(self) -> Any:
        raise NotImplementedError

    async def list_tables(self, dataset_id: Optional[str]) -> List[str]:
        raise NotImplementedError

    async def get_table_metadata(self, dataset_id: Optional[str], table_name: str) -> Dict[str, Any]:
        raise NotImplementedError

    async def get_dataset_metadata(self, dataset_id: Optional[str]) -> Dict[str, Any]:
        raise NotImplementedError

    async def execute(self, sql: str, location: Optional[str]) -> List[Dict[str, Any]]:
        raise NotImplementedError


class BigQueryWarehouse(Warehouse):
    name = "bigquery"

    def _connect(self) -> bigquery.Client:
        # Credentials come from GOOGLE_APPLICATION_CREDENTIALS / ADC
        if not self._config.project_id:
            raise ConfigurationError("BIGQUERY_PROJECT_ID environment variable is not set")
        if not self._config.dataset_id:
            raise ConfigurationError("BIGQUERY_DATASET environment variable is not set")
        return bigquery.Client(project=self._config.project_id)

    async def list_tables(self, dataset_id: Optional[str]) -> List[str]:
        client = self.ensure_initialized()
        tables = await asyncio.to_thread(lambda: list(client.list_tables(dataset_id)))
        return [table.table_id for table in tables]

    async def get_table_metadata(self, dataset_id: Optional[str], table_name: str) -> Dict[str, Any]:
        client = self.ensure_initialized()
        table = await asyncio.to_thread(client.get_table, f"{dataset_id}.{table_name}")
        return {
            "fields": [
                {
                    "name": f.name,
                    "type": f.field_type,
                    "mode": f.mode,
                    "description": f.description,
                }
                for f in table.schema
            ],
            "description": table.description or "",
        }

    async def get_dataset_metadata(self, dataset_id: Optional[str]) -> Dict[str, Any]:
        client = self.ensure_initialized()
        dataset = await asyncio.to_thread(client.get_dataset, dataset_id)
        return {"location": dataset.location}

    async def execute(self, sql: str, location: Optional[str]) -> List[Dict[str, Any]]:
        client = self.ensure_initialized()
        timeout = self._config.query_timeout_seconds

        def _run() -> List[Dict[str, Any]]:
            job = client.query(sql, location=location)
            return [dict(row.items()) for row in job.result(timeout=timeout)]

        logger.info("Executing query in %s: %s", location, sql)
        rows = await asyncio.to_thread(_run)
        return json_safe_records(rows)


class DuckDBWarehouse(Warehouse):
    """Local DuckDB database where a dataset is a schema. Has no location."""

    name = "duckdb"

    def __init__(self, config: Settings = settings, connection: Optional[duckdb.DuckDBPyConnection] = None) -> None:
        super().__init__(config)
        self._client = connection

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(self._config.duckdb_path)

    def _query(self, sql: str, params: Optional[list] = None) -> List[tuple]:
        # cursor() gives each worker thread its own handle on the same database
        cursor = self.ensure_initialized().cursor()
        try:
            return cursor.execute(sql, params or []).fetchall()
        finally:
            cursor.close()

    async def list_tables(self, dataset_id: Optional[str]) -> List[str]:
        rows = await asyncio.to_thread(
            self._query,
            "SELECT table_name FROM duckdb_tables() WHERE schema_name = ? ORDER BY table_name",
            [dataset_id or "main"],
        )
        return [row[0] for row in rows]

    async def get_table_metadata(self, dataset_id: Optional[str], table_name: str) -> Dict[str, Any]:
        schema = dataset_id or "main"
        tables = await asyncio.to_thread(
            self._query,
            "SELECT comment FROM duckdb_tables() WHERE schema_name = ? AND table_name = ?",
            [schema, table_name],
        )
        if not tables:
            raise LookupError(f"Table {schema}.{table_name} not found")
        columns = await asyncio.to_thread(
            self._query,
            "SELECT column_name, data_type, is_nullable, comment FROM duckdb_columns() "
            "WHERE schema_name = ? AND table_name = ? ORDER BY column_index",
            [schema, table_name],
        )
        return {
            "fields": [
                {
                    "name": name,
                    "type": data_type,
                    "mode": "NULLABLE" if nullable else "REQUIRED",
                    "description": comment or None,
                }
                for name, data_type, nullable, comment in columns
            ],
            "description": tables[0][0] or "",
        }

    async def get_dataset_metadata(self, dataset_id: Optional[str]) -> Dict[str, Any]:
        return {"location": None}

    async def execute(self, sql: str, location: Optional[str]) -> List[Dict[str, Any]]:
        def _run() -> List[Dict[str, Any]]:
            cursor = self.ensure_initialized().cursor()
            try:
                return records_from_dataframe(cursor.execute(sql).df())
            finally:
                cursor.close()

        logger.info("Executing query: %s", sql)
        return await asyncio.to_thread(_run)


WAREHOUSES = {
    BigQueryWarehouse.name: BigQueryWarehouse,
    DuckDBWarehouse.name: DuckDBWarehouse,
}


def build_warehouse(config: Settings = settings) -> Warehouse:
    try:
        cls = WAREHOUSES[config.warehouse_backend.lower()]
    except KeyError as exc:
        raise ConfigurationError(
            f"Unsupported WAREHOUSE_BACKEND: {config.warehouse_backend}. "
            f"Choose one of: {', '.join(WAREHOUSES)}"
        ) from exc
    return cls(config)
