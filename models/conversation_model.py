"""
Data models for conversation turns and persisted conversation records.
"""

from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class Turn(BaseModel):
    """One message of a conversation. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ConversationRecord(BaseModel):
    """A conversation snapshot as stored in the conversations table."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    session_id: str = Field(..., alias="sessionId")
    user_id: Optional[str] = Field(None, alias="userId")
    messages: List[Turn] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=datetime.utcnow, alias="updatedAt")
