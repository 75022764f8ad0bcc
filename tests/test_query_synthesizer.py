import pytest

from conftest import StubGenerator
from analytics_backend.errors import GenerationFailed
from analytics_backend.models.schema import SchemaField, TableSchema
from analytics_backend.services.query_synthesizer import (
    QuerySynthesizer,
    format_schema_context,
    strip_code_fences,
)

ORDERS = TableSchema(
    table_name="orders",
    fields=(
        SchemaField("id", "INTEGER", "REQUIRED", "Primary key"),
        SchemaField("note", "STRING"),
    ),
    description="Customer orders",
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("```sql\nSELECT 1\n```", "SELECT 1"),
        ("```SQL\nSELECT 1\n```", "SELECT 1"),
        ("```\nSELECT 1\n```", "SELECT 1"),
        ("  SELECT 1  \n", "SELECT 1"),
        ("Here you go:\n```sql\nSELECT a\nFROM t\n```", "Here you go:\nSELECT a\nFROM t"),
    ],
)
def test_strip_code_fences(raw, expected):
    assert strip_code_fences(raw) == expected


def test_strip_code_fences_is_idempotent():
    once = strip_code_fences("```sql\nSELECT * FROM t LIMIT 10\n```")
    assert strip_code_fences(once) == once


def test_schema_context_lines():
    context = format_schema_context([ORDERS], "sales")

    assert "Table: sales.orders" in context
    assert "Description: Customer orders" in context
    assert "  - id (INTEGER, REQUIRED): Primary key" in context
    assert "  - note (STRING)\n" in context


def test_schema_context_empty():
    assert format_schema_context([], "sales") == ""


def test_sql_prompt_with_dataset(config):
    synthesizer = QuerySynthesizer(StubGenerator(config), config=config)

    prompt = synthesizer.build_sql_prompt("top customers", [ORDERS], "sales")

    assert 'qualified with the dataset name "sales"' in prompt
    assert "valid BigQuery SQL query" in prompt
    assert prompt.endswith("User query: top customers\n\nSQL Query:")


def test_sql_prompt_without_dataset(config):
    synthesizer = QuerySynthesizer(StubGenerator(config), dialect="DuckDB", config=config)

    prompt = synthesizer.build_sql_prompt("top customers", [ORDERS], None)

    assert "CRITICAL" not in prompt
    assert "Table: orders\n" in prompt
    assert "Use standard DuckDB SQL syntax" in prompt


@pytest.mark.asyncio
async def test_generate_sql_calls_model_once(config):
    generator = StubGenerator(config, replies=["```sql\nSELECT COUNT(*) FROM sales.orders\n```"])
    synthesizer = QuerySynthesizer(generator, config=config)

    sql = await synthesizer.generate_sql("how many orders", [ORDERS], "sales")

    assert sql == "SELECT COUNT(*) FROM sales.orders"
    assert len(generator.prompts) == 1


@pytest.mark.asyncio
async def test_generate_sql_wraps_failures(config):
    cause = ConnectionError("network unreachable")
    synthesizer = QuerySynthesizer(StubGenerator(config, replies=[cause]), config=config)

    with pytest.raises(GenerationFailed) as excinfo:
        await synthesizer.generate_sql("how many orders")

    assert excinfo.value.__cause__ is cause
    assert "network unreachable" in excinfo.value.details


@pytest.mark.asyncio
async def test_explanation_strips_one_period(config):
    synthesizer = QuerySynthesizer(StubGenerator(config, replies=["Sales grew 5%.."]), config=config)

    explanation = await synthesizer.explain_results("q", "SELECT 1", [{"x": 1}])

    assert explanation == "Sales grew 5%."


@pytest.mark.asyncio
async def test_explanation_prompt_samples_first_rows(config):
    generator = StubGenerator(config, replies=["ok"])
    synthesizer = QuerySynthesizer(generator, config=config)
    rows = [{"n": i} for i in range(5)]

    await synthesizer.explain_results("list numbers", "SELECT n FROM t", rows)

    prompt = generator.prompts[0]
    assert 'The user asked: "list numbers"' in prompt
    assert "Found 5 result(s)" in prompt
    assert '{"n":2}' in prompt
    assert '{"n":3}' not in prompt


@pytest.mark.asyncio
async def test_explanation_prompt_without_rows(config):
    generator = StubGenerator(config, replies=["nothing there"])
    synthesizer = QuerySynthesizer(generator, config=config)

    explanation = await synthesizer.explain_results("q", "SELECT 1 WHERE FALSE", [])

    assert "No results found." in generator.prompts[0]
    assert explanation == "nothing there"


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", [RuntimeError("rate limited"), "   "])
async def test_explanation_never_raises(config, reply):
    synthesizer = QuerySynthesizer(StubGenerator(config, replies=[reply]), config=config)

    explanation = await synthesizer.explain_results("q", "SELECT 1", [{"a": 1}, {"a": 2}])

    assert explanation == "Query executed successfully. Found 2 result(s)"
