from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class SchemaField:
    name: str
    type: str
    mode: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "SchemaField":
        return cls(
            name=str(raw["name"]),
            type=str(raw.get("type") or raw.get("field_type") or "UNKNOWN"),
            mode=raw.get("mode") or None,
            description=raw.get("description") or None,
        )


@dataclass(frozen=True)
class TableSchema:
    """Column-level metadata of one warehouse table, used as prompt context."""

    table_name: str
    fields: Tuple[SchemaField, ...] = ()
    description: Optional[str] = None

    def qualified_name(self, dataset_id: Optional[str] = None) -> str:
        return f"{dataset_id}.{self.table_name}" if dataset_id else self.table_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tableName": self.table_name,
            "description": self.description or "",
            "fields": [asdict(f) for f in self.fields],
        }


@dataclass
class ChatExchange:
    """One answered question. Built per request and never stored."""

    user_query: str
    generated_sql: str
    rows: List[Dict[str, Any]] = field(default_factory=list)
    explanation: str = ""

    @property
    def result_count(self) -> int:
        return len(self.rows)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "success": True,
            "userQuery": self.user_query,
            "sqlQuery": self.generated_sql,
            "explanation": self.explanation,
            "results": self.rows,
            "resultCount": self.result_count,
        }
