from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence

from analytics_backend.config import Settings, settings
from analytics_backend.errors import ExplanationFailed, GenerationFailed
from analytics_backend.models.schema import TableSchema
from analytics_backend.services.calls import advisory, describe
from analytics_backend.services.llm_client import TextGenerator
from analytics_backend.utils.dataframe_utils import dumps_rows
from analytics_backend.utils.logger import logger

CODE_FENCE = re.compile(r"```(?:sql)?[ \t]*\n?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Drop markdown fence markers around (or inside) model output and trim."""
    return CODE_FENCE.sub("", text or "").strip()


def fallback_explanation(rows: Sequence[Any]) -> str:
    return f"Query executed successfully. Found {len(rows)} result(s)"


def format_schema_context(schemas: Sequence[TableSchema], dataset_id: Optional[str] = None) -> str:
    if not schemas:
        return ""
    lines = ["", "", "Available tables and their schemas:"]
    for schema in schemas:
        lines.append("")
        lines.append(f"Table: {schema.qualified_name(dataset_id)}")
        if schema.description:
            lines.append(f"Description: {schema.description}")
        lines.append("Columns:")
        for field in schema.fields:
            kind = f"{field.type}, {field.mode}" if field.mode else field.type
            line = f"  - {field.name} ({kind})"
            if field.description:
                line += f": {field.description}"
            lines.append(line)
    return "\n".join(lines) + "\n"


class QuerySynthesizer:
    """Turns questions into SQL and query results into a short summary."""

    def __init__(self, generator: TextGenerator, dialect: str = "BigQuery", config: Settings = settings) -> None:
        self._generator = generator
        self._dialect = dialect
        self._sample_rows = config.explain_sample_rows

    def ensure_initialized(self) -> None:
        self._generator.ensure_initialized()

    def build_sql_prompt(
        self, user_query: str, schemas: Sequence[TableSchema], dataset_id: Optional[str] = None
    ) -> str:
        dataset_instruction = (
            f'\nCRITICAL: All table names MUST be qualified with the dataset name "{dataset_id}". '
            f'Use the format "{dataset_id}.table_name" for all table references.'
            if dataset_id
            else ""
        )
        return (
            f"You are a SQL expert assistant. Convert the following natural language query "
            f"into a valid {self._dialect} SQL query.\n"
            f"{format_schema_context(schemas, dataset_id)}{dataset_instruction}\n\n"
            "Important guidelines:\n"
            "1. Generate ONLY the SQL query, no explanations or markdown formatting\n"
            f"2. Use standard {self._dialect} SQL syntax\n"
            "3. For exploratory queries, use appropriate aggregations (COUNT, SUM, AVG, etc.)\n"
            "4. For predefined queries, follow the exact requirements\n"
            "5. Always use proper table and column names from the schema provided\n"
            "6. Include appropriate WHERE clauses when filtering is mentioned\n"
            "7. Use LIMIT clause when appropriate to prevent large result sets\n"
            "8. Format dates and timestamps properly if needed\n"
            "9. ALWAYS qualify table names with the dataset name using the format: dataset.table_name\n\n"
            f"User query: {user_query}\n\n"
            "SQL Query:"
        )

    def build_explanation_prompt(self, user_query: str, sql_query: str, rows: Sequence[Dict[str, Any]]) -> str:
        if rows:
            summary = (
                f"Found {len(rows)} result(s). "
                f"Sample data: {dumps_rows(list(rows[: self._sample_rows]))}"
            )
        else:
            summary = "No results found."
        return (
            f'The user asked: "{user_query}"\n'
            f"The SQL query executed was: {sql_query}\n"
            f"{summary}\n\n"
            "Provide a brief, conversational explanation of the results. "
            "Keep it concise and user-friendly. Do not end with a period unless necessary."
        )

    async def generate_sql(
        self, user_query: str, schemas: Sequence[TableSchema] = (), dataset_id: Optional[str] = None
    ) -> str:
        prompt = self.build_sql_prompt(user_query, schemas, dataset_id)
        try:
            raw = await self._generator.generate(prompt)
        except Exception as exc:  # noqa: BLE001
            logger.error("SQL generation failed: %s", describe(exc))
            raise GenerationFailed(details=f"Failed to generate SQL: {describe(exc)}") from exc
        sql = strip_code_fences(raw)
        logger.info("Generated SQL: %s", sql)
        return sql

    async def _explain(self, user_query: str, sql_query: str, rows: List[Dict[str, Any]]) -> str:
        text = (await self._generator.generate(self.build_explanation_prompt(user_query, sql_query, rows))).strip()
        if not text:
            raise ExplanationFailed(details="empty reply from the model")
        if text.endswith("."):
            text = text[:-1]
        return text

    async def explain_results(self, user_query: str, sql_query: str, rows: List[Dict[str, Any]]) -> str:
        """Never raises; a failed or empty reply becomes a templated summary."""
        return await advisory(
            self._explain(user_query, sql_query, rows),
            lambda _exc: fallback_explanation(rows),
            "generate explanation",
        )
