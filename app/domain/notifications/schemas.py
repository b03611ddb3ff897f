"""Notification schemas - Pydantic models for dispatch requests and results"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class NotificationMessage(BaseModel):
    type: str
    channel: Literal["email", "sms"]
    recipient: str
    template_data: dict[str, Any] = {}
    customer_id: Optional[int] = None


class NotificationResult(BaseModel):
    success: bool
    log_id: Optional[int] = None
    message_id: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False


class RetryError(BaseModel):
    log_id: int
    error: str


class RetryResult(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: list[RetryError] = []


class NotificationLogResponse(BaseModel):
    id: int
    customer_id: Optional[int] = None
    type: str
    channel: str
    recipient: str
    subject: Optional[str] = None
    content: Optional[str] = None
    template_data: Optional[dict] = None
    status: str
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int
    retry_after: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationLogPage(BaseModel):
    logs: list[NotificationLogResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class NotificationLogFilters(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=100)
    status: Optional[Literal["pending", "sent", "failed"]] = None
    channel: Optional[Literal["email", "sms"]] = None
    type: Optional[str] = None
