"""消息、成员在线状态、语义搜索的请求和响应模型"""
from pydantic import BaseModel, Field
from typing import List, Optional


class MessageCreateRequest(BaseModel):
    """Insert a message. Plain text bodies are wrapped into a document."""

    workspace_id: str
    member_id: int
    body: str = Field(..., min_length=1)
    conversation_id: Optional[int] = None
    channel_id: Optional[str] = None
    parent_message_id: Optional[int] = None


class MessageUpdateRequest(BaseModel):
    body: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    id: str
    workspace_id: str
    member_id: int
    conversation_id: Optional[int] = None
    channel_id: Optional[str] = None
    body: str
    kind: str


class MessageCreateResponse(MessageResponse):
    avatar_job_id: Optional[str] = Field(None, description="Scheduled avatar reply, if any")
    avatar_skip_reason: Optional[str] = None


class MessageDeleteResponse(BaseModel):
    success: bool = True
    id: str


class PresenceRequest(BaseModel):
    is_online: bool


class PresenceResponse(BaseModel):
    member_id: int
    user_id: str
    is_online: bool


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    workspace_id: str
    top_k: int = Field(5, ge=1, le=50)


class SearchResult(BaseModel):
    id: str
    score: float
    text: str
    message_id: Optional[str] = None
    user_id: Optional[str] = None


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResult]
    total_results: int
