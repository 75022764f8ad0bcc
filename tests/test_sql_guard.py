import pytest

from analytics_backend.services.sql_guard import check_read_only, is_lexically_read_only


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT 1",
        "select id from dataset.orders limit 10",
        "SELECT COUNT(*) AS cnt FROM dataset.orders",
        "SELECT * FROM `project.dataset.orders` LIMIT 5;",
        "WITH recent AS (SELECT * FROM dataset.orders WHERE day > '2024-01-01') SELECT COUNT(*) FROM recent",
        "-- top customers\nSELECT customer, SUM(amount) FROM dataset.orders GROUP BY customer",
        "(SELECT 1 AS x) UNION ALL (SELECT 2 AS x)",
        "SELECT AVG(load) AS avg_load FROM dataset.servers",
    ],
)
def test_strict_accepts_reads(sql):
    assert check_read_only(sql, "strict").allowed


@pytest.mark.parametrize(
    "sql",
    [
        "DROP TABLE x",
        "SELECT 1; DROP TABLE dataset.orders",
        "DELETE FROM dataset.orders -- SELECT",
        "/* SELECT */ UPDATE dataset.orders SET amount = 0",
        "INSERT INTO dataset.archive SELECT * FROM dataset.orders",
        "CREATE TABLE dataset.copy AS SELECT * FROM dataset.orders",
        "(DELETE FROM dataset.orders) -- SELECT",
        "COPY (SELECT * FROM dataset.orders) TO 'orders.csv'",
    ],
)
def test_strict_rejects_writes(sql):
    verdict = check_read_only(sql, "strict")
    assert not verdict.allowed
    assert verdict.reason


def test_lexical_is_substring_only():
    assert not check_read_only("DROP TABLE x", "lexical").allowed
    assert check_read_only("select 1", "lexical").allowed
    # known gap of the lexical mode
    assert check_read_only("DELETE FROM t -- SELECT", "lexical").allowed


def test_lexical_predicate_is_case_insensitive():
    assert is_lexically_read_only("sElEcT 1")
    assert not is_lexically_read_only("SHOW TABLES")
