"""
Typed rows for the device directory and chat history tables.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Device:
    device_id: str
    device_name: str
    room: str
    connection_url: Optional[str] = None
    control_method: str = "GET"  # GET|POST
    control_on: Optional[str] = None
    control_off: Optional[str] = None
    room_id: Optional[str] = None
    device_type: Optional[str] = None
    status: str = "off"
    enabled: bool = True
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def command_for(self, turn_on: bool) -> Optional[str]:
        return self.control_on if turn_on else self.control_off


@dataclass
class ChatRecord:
    question: str
    answer: str
    answer_source: str  # RAG|LLM
    mode: str
    rag_used: bool = False
    rag_context: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = field(default=None)
