from __future__ import annotations

from typing import Any, List

from analytics_backend.config import Settings, settings
from analytics_backend.errors import (
    EmptyGeneration,
    ExecutionFailed,
    GenerationFailed,
    InvalidInput,
    UnsafeQuery,
)
from analytics_backend.models.schema import ChatExchange, TableSchema
from analytics_backend.services.calls import advisory, critical
from analytics_backend.services.llm_client import build_generator
from analytics_backend.services.query_synthesizer import QuerySynthesizer
from analytics_backend.services.schema_provider import SchemaProvider
from analytics_backend.services.sql_guard import check_read_only
from analytics_backend.services.warehouse import Warehouse, build_warehouse
from analytics_backend.utils.logger import logger

DIALECTS = {"bigquery": "BigQuery", "duckdb": "DuckDB"}


class QueryEngine:
    """Question in, answered ChatExchange out.

    Steps: validate, load schema context (advisory), generate SQL (critical),
    reject empty or non-read-only SQL, execute (critical), explain (advisory).
    Each failing step raises the matching AnalyticsError.
    """

    def __init__(
        self,
        schema_provider: SchemaProvider,
        synthesizer: QuerySynthesizer,
        warehouse: Warehouse,
        guard_mode: str = "strict",
    ) -> None:
        self.schema_provider = schema_provider
        self.synthesizer = synthesizer
        self.warehouse = warehouse
        self.guard_mode = guard_mode

    def ensure_initialized(self) -> None:
        """Build both remote clients now so missing configuration fails fast."""
        self.warehouse.ensure_initialized()
        self.synthesizer.ensure_initialized()

    async def answer(self, message: Any) -> ChatExchange:
        if not isinstance(message, str) or not message.strip():
            raise InvalidInput()

        schemas: List[TableSchema] = await advisory(
            self.schema_provider.get_all_schemas(),
            [],
            "fetch table schemas",
        )

        # generate_sql raises GenerationFailed itself; wrapped like every other critical step
        sql = await critical(
            self.synthesizer.generate_sql(message, schemas, self.schema_provider.dataset_id),
            GenerationFailed,
        )
        if not sql or not sql.strip():
            raise EmptyGeneration()

        verdict = check_read_only(sql, self.guard_mode)
        if not verdict.allowed:
            logger.warning("Rejected generated SQL (%s): %s", verdict.reason, sql)
            raise UnsafeQuery(generated_query=sql)

        location = await self.schema_provider.resolve_location()
        rows = await critical(self.warehouse.execute(sql, location), ExecutionFailed, generated_query=sql)
        logger.info("Query returned %d row(s)", len(rows))

        explanation = await self.synthesizer.explain_results(message, sql, rows)
        return ChatExchange(user_query=message, generated_sql=sql, rows=rows, explanation=explanation)


def build_query_engine(config: Settings = settings) -> QueryEngine:
    warehouse = build_warehouse(config)
    generator = build_generator(config)
    return QueryEngine(
        schema_provider=SchemaProvider(warehouse, config),
        synthesizer=QuerySynthesizer(
            generator, dialect=DIALECTS.get(config.warehouse_backend.lower(), "SQL"), config=config
        ),
        warehouse=warehouse,
        guard_mode=config.sql_guard_mode,
    )


query_engine = build_query_engine()
