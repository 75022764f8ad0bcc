from __future__ import annotations

import asyncio
from typing import List, Optional

from analytics_backend.config import Settings, settings
from analytics_backend.errors import SchemaUnavailable
from analytics_backend.models.schema import SchemaField, TableSchema
from analytics_backend.services.calls import describe
from analytics_backend.services.warehouse import Warehouse
from analytics_backend.utils.logger import logger


class SchemaProvider:
    """Table and column metadata of the configured dataset."""

    def __init__(self, warehouse: Warehouse, config: Settings = settings) -> None:
        self._warehouse = warehouse
        self._dataset_id = config.dataset_id
        self._default_location = config.default_location
        # explicit override wins; otherwise resolved once from dataset metadata
        self._location: Optional[str] = config.location

    @property
    def dataset_id(self) -> Optional[str]:
        return self._dataset_id

    async def list_tables(self) -> List[str]:
        try:
            return await self._warehouse.list_tables(self._dataset_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error getting tables: %s", describe(exc))
            raise SchemaUnavailable(details=describe(exc)) from exc

    async def get_schema(self, table_name: str) -> TableSchema:
        metadata = await self._warehouse.get_table_metadata(self._dataset_id, table_name)
        return TableSchema(
            table_name=table_name,
            fields=tuple(SchemaField.from_mapping(f) for f in metadata.get("fields") or []),
            description=metadata.get("description") or None,
        )

    async def get_all_schemas(self) -> List[TableSchema]:
        """Fetch every table's schema concurrently, in table-list order.

        One failing table fails the whole call with that table's error, and
        the lookups still in flight are cancelled.
        """
        tables = await self.list_tables()
        tasks = [asyncio.ensure_future(self.get_schema(name)) for name in tables]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def resolve_location(self) -> str:
        if self._location:
            return self._location
        try:
            metadata = await self._warehouse.get_dataset_metadata(self._dataset_id)
            self._location = metadata.get("location") or self._default_location
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Could not fetch dataset location, defaulting to %s: %s",
                self._default_location,
                describe(exc),
            )
            self._location = self._default_location
        return self._location
