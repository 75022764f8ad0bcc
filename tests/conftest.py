from collections import Counter

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from analytics_backend.app import app, get_query_engine
from analytics_backend.config import Settings
from analytics_backend.services.llm_client import TextGenerator
from analytics_backend.services.query_engine import QueryEngine
from analytics_backend.services.query_synthesizer import QuerySynthesizer
from analytics_backend.services.schema_provider import SchemaProvider
from analytics_backend.services.warehouse import Warehouse

ORDERS_METADATA = {
    "fields": [
        {"name": "id", "type": "INTEGER", "mode": "REQUIRED", "description": "Order id"},
        {"name": "amount", "type": "NUMERIC", "mode": "NULLABLE"},
    ],
    "description": "Customer orders",
}


class StubWarehouse(Warehouse):
    """In-memory warehouse that records every call."""

    name = "stub"

    def __init__(self, config, tables=None, rows=None, location="EU"):
        super().__init__(config)
        self.tables = dict(tables or {})
        self.rows = list(rows or [])
        self.location = location
        self.list_error = None
        self.table_errors = {}
        self.metadata_error = None
        self.execute_error = None
        self.executed = []
        self.calls = Counter()

    def _connect(self):
        return object()

    async def list_tables(self, dataset_id):
        self.calls["list_tables"] += 1
        if self.list_error:
            raise self.list_error
        return list(self.tables)

    async def get_table_metadata(self, dataset_id, table_name):
        self.calls["get_table_metadata"] += 1
        if table_name in self.table_errors:
            raise self.table_errors[table_name]
        return self.tables[table_name]

    async def get_dataset_metadata(self, dataset_id):
        self.calls["get_dataset_metadata"] += 1
        if self.metadata_error:
            raise self.metadata_error
        return {"location": self.location}

    async def execute(self, sql, location):
        self.calls["execute"] += 1
        self.executed.append((sql, location))
        if self.execute_error:
            raise self.execute_error
        return list(self.rows)


class StubGenerator(TextGenerator):
    """Replies from a queue; an Exception in the queue is raised instead."""

    name = "stub"

    def __init__(self, config, replies=None):
        super().__init__(config)
        self.replies = list(replies or [])
        self.prompts = []

    def _connect(self):
        return object()

    async def generate(self, prompt):
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else "Here are your results"
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def config():
    return Settings(
        warehouse_backend="bigquery",
        project_id="test-project",
        dataset_id="dataset",
        location=None,
        llm_provider="langchain",
        openai_api_key="",
        gemini_api_key="",
        sql_guard_mode="strict",
        explain_sample_rows=3,
    )


@pytest.fixture
def warehouse(config):
    return StubWarehouse(config, tables={"orders": ORDERS_METADATA}, rows=[{"cnt": 42}])


@pytest.fixture
def generator(config):
    return StubGenerator(config)


@pytest.fixture
def engine(config, warehouse, generator):
    return QueryEngine(
        schema_provider=SchemaProvider(warehouse, config),
        synthesizer=QuerySynthesizer(generator, config=config),
        warehouse=warehouse,
        guard_mode=config.sql_guard_mode,
    )


@pytest_asyncio.fixture
async def client(engine):
    app.dependency_overrides[get_query_engine] = lambda: engine

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
