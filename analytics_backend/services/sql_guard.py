from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import sqlparse
from sqlparse import tokens as T

# Statement keywords: SELECT and friends, CREATE/DROP/ALTER, GRANT/REVOKE.
STATEMENT_TOKEN_TYPES = (T.Keyword.DML, T.Keyword.DDL, T.Keyword.DCL)


@dataclass(frozen=True)
class GuardVerdict:
    allowed: bool
    reason: Optional[str] = None


def is_lexically_read_only(sql: str) -> bool:
    """The coarse check: the uppercased statement mentions SELECT somewhere."""
    return "SELECT" in sql.upper()


def _leads_with_select(statement) -> bool:
    if statement.get_type() == "SELECT":
        return True
    # (SELECT ...) UNION ALL (SELECT ...) has no leading keyword
    leading = [t for t in statement.flatten() if not t.is_whitespace]
    if not leading or leading[0].value != "(":
        return False
    for token in leading:
        if token.ttype in STATEMENT_TOKEN_TYPES:
            return token.normalized == "SELECT"
    return False


def check_read_only(sql: str, mode: str = "strict") -> GuardVerdict:
    """Decide whether generated SQL may run.

    ``lexical`` only applies the substring check, which comments, batching or
    a CTE wrapped around a write all defeat. ``strict`` additionally parses
    the text and requires one comment-free statement whose first statement
    keyword is SELECT, possibly behind a CTE or an opening parenthesis. Any
    later INSERT, DROP, GRANT and the like rejects it. Ordinary keywords such
    as ``load`` used as column names are left alone.
    """
    if not is_lexically_read_only(sql):
        return GuardVerdict(False, "statement does not contain SELECT")
    if mode == "lexical":
        return GuardVerdict(True)

    body = sqlparse.format(sql, strip_comments=True).strip()
    statements = [s for s in sqlparse.parse(body) if s.value.strip().strip(";").strip()]
    if len(statements) != 1:
        return GuardVerdict(False, "exactly one statement is allowed")

    statement = statements[0]
    if not _leads_with_select(statement):
        return GuardVerdict(False, f"statement type {statement.get_type()} is not allowed")

    for token in statement.flatten():
        if token.ttype in STATEMENT_TOKEN_TYPES and token.normalized != "SELECT":
            return GuardVerdict(False, f"keyword {token.normalized} is not allowed")
    return GuardVerdict(True)
