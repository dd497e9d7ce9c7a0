"""
Shared Pydantic models used across routers
Error format, health and notification responses
"""

from typing import Dict, Any, Optional, List, Literal
from datetime import datetime
from pydantic import BaseModel, Field


# ============================================================
# Base Response Models
# ============================================================

class ErrorResponse(BaseModel):
    """Single error format returned by every exception handler"""
    error: str = Field(..., description="Machine readable error code")
    detail: Any = Field(None, description="Human readable message or validation details")
    request_id: Optional[str] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)


# ============================================================
# System/Health Models
# ============================================================

class HealthResponse(BaseModel):
    """Service health check response"""
    status: Literal['healthy', 'degraded', 'unhealthy']
    service: str
    uptime: Optional[float] = None
    checks: Dict[str, Any] = Field(default_factory=dict)


class SystemInfo(BaseModel):
    """System information"""
    version: str
    backend: str = "FastAPI"
    python_version: str
    settings: Dict[str, Any] = Field(default_factory=dict)
    rule_set: Dict[str, int] = Field(default_factory=dict, description="Record counts per rule table")


# ============================================================
# Session Models
# ============================================================

class PersistenceNotification(BaseModel):
    """A background write that failed"""
    character_id: str
    operation: str
    error: str
    timestamp: float


class NotificationsResponse(BaseModel):
    notifications: List[PersistenceNotification] = Field(default_factory=list)
    count: int = 0
