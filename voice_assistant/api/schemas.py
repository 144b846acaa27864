"""
Request and response models for the HTTP API.
"""

from pydantic import BaseModel, field_validator, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime


class HealthResponse(BaseModel):
    status: str
    version: str
    mode: str
    mock: bool
    rag_enabled: bool
    vector_store: str
    db_healthy: bool
    config_issues: List[str] = []


class TextRequest(BaseModel):
    text: str

    @field_validator('text')
    @classmethod
    def text_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('text cannot be empty')
        return v


class VoiceResponse(BaseModel):
    text: Optional[str] = None
    reply: Optional[str] = None
    audio_file: Optional[str] = None
    audio_url: Optional[str] = None
    rag_used: bool = False


class AsrResponse(BaseModel):
    text: str


class TtsResponse(BaseModel):
    file: str
    url: str


# Knowledge base

class DocumentRequest(BaseModel):
    text: str
    metadata: Dict[str, Any] = {}

    @field_validator('text')
    @classmethod
    def text_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('text cannot be empty')
        return v


class BatchDocumentRequest(BaseModel):
    documents: List[DocumentRequest]


class DocumentResponse(BaseModel):
    id: str


class BatchDocumentResponse(BaseModel):
    ids: List[str]


class SearchRequest(BaseModel):
    query: str
    top_k: int = 5


class SearchHit(BaseModel):
    id: str
    text: str
    score: float
    metadata: Dict[str, Any]


class SearchResponse(BaseModel):
    query: str
    results: List[SearchHit]


class StatsResponse(BaseModel):
    count: int
    store: str


class RemoveResponse(BaseModel):
    removed: int


class SyncResponse(BaseModel):
    added: int


# Devices

class DeviceRequest(BaseModel):
    device_id: str
    device_name: str
    room: str
    room_id: Optional[str] = None
    device_type: Optional[str] = None
    connection_url: Optional[str] = None
    control_method: str = "GET"
    control_on: Optional[str] = None
    control_off: Optional[str] = None
    status: str = "off"
    enabled: bool = True

    @field_validator('device_id', 'device_name', 'room')
    @classmethod
    def must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('must not be empty')
        return v.strip()

    @field_validator('control_method')
    @classmethod
    def control_method_must_be_valid(cls, v):
        method = v.upper()
        if method not in ['GET', 'POST']:
            raise ValueError('control_method must be one of: GET, POST')
        return method


class DeviceResponse(DeviceRequest):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ControlRequest(BaseModel):
    action: str
    room: Optional[str] = None
    device_id: Optional[str] = None

    @field_validator('action')
    @classmethod
    def action_must_be_valid(cls, v):
        action = v.strip().lower()
        if action not in ['on', 'off']:
            raise ValueError('action must be one of: on, off')
        return action


class ControlResponse(BaseModel):
    success_count: int


# Chat history

class ChatHistoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    question: str
    answer: Optional[str] = None
    answer_source: Optional[str] = None
    mode: Optional[str] = None
    rag_used: bool = False
    rag_context: Optional[str] = None
    created_at: Optional[datetime] = None


class ChatHistoryPage(BaseModel):
    items: List[ChatHistoryItem]
    page: int
    size: int
    total: int
