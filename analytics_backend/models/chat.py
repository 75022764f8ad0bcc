from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    message: Optional[str] = Field(None, description="User question in natural language")


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    user_query: str = Field(..., alias="userQuery")
    sql_query: str = Field(..., alias="sqlQuery")
    explanation: str
    results: List[Dict[str, Any]]
    result_count: int = Field(..., alias="resultCount")


class ErrorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error: str
    details: Optional[str] = None
    generated_query: Optional[str] = Field(None, alias="generatedQuery")
