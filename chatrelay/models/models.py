# chatrelay/models/models.py
from pydantic import BaseModel
from typing import List

class Session(BaseModel):
    username: str
    room: str

class ChatMessage(BaseModel):
    id: str
    username: str
    text: str
    timestamp: int

class MediaMessage(BaseModel):
    id: str
    username: str
    url: str
    mimetype: str
    timestamp: int

class SystemNotice(BaseModel):
    message: str
    timestamp: int

class TypingNotice(BaseModel):
    username: str

class UploadResult(BaseModel):
    url: str
    mimetype: str
    name: str = ""

class RoomUsers(BaseModel):
    room: str
    users: List[str]
