from pydantic import BaseModel
from typing import Dict, Any
from enum import Enum


class StreamEventType(str, Enum):
    """Control event names on the productivity WebSocket"""
    ERROR = "error"
    PING = "ping"
    PONG = "pong"


class StreamMessage(BaseModel):
    """Control message exchanged over the productivity WebSocket"""
    event: StreamEventType
    data: Dict[str, Any]


class StreamCommand(BaseModel):
    """Command sent by a WebSocket client"""
    command: str
    data: Dict[str, Any] = {}
