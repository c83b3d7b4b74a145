"""AI 分身相关的请求和响应模型"""
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class AvatarToggleResponse(BaseModel):
    success: bool = True
    is_active: bool


class AvatarStateResponse(BaseModel):
    """Avatar state; users without a stored row get inactive defaults."""

    user_id: str
    is_active: bool = False
    last_active_at: Optional[datetime] = None
    personality_profile: Optional[str] = None


class AvatarActiveResponse(BaseModel):
    user_id: str
    is_active: bool


class ProfileUpdateRequest(BaseModel):
    personality_profile: str = Field(..., min_length=1, description="Communication style description")


class SuccessResponse(BaseModel):
    success: bool = True


class AvatarHandleRequest(BaseModel):
    """Run the reply pipeline immediately."""

    user_id: str
    message_text: str
    conversation_id: int
    workspace_id: str
    receiver_member_id: int


class AvatarOutcomeResponse(BaseModel):
    success: bool
    message_id: Optional[str] = None
    reason: Optional[str] = None


class CapabilityStatus(BaseModel):
    provider: Optional[str] = None
    configured: bool = False
    detail: Optional[str] = None


class AvatarSetupResponse(BaseModel):
    """Configuration diagnostics; no external service is contacted."""

    completion_servers: List[str] = Field(default_factory=list)
    completion_models: Dict[str, bool] = Field(default_factory=dict)
    embedding: CapabilityStatus
    vector_index: CapabilityStatus
    avatar_states: int = 0
    pending_jobs: int = 0
