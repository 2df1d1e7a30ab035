"""
Records kept by the chat store.

Each model maps to one collection of InMemoryStorage (and, for chats, to the
Redis hash mirrored by RedisCache).
"""
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """
    Profile of a chat participant
    Collection: "users"
    """
    id: str = Field(default_factory=new_id)
    username: str = Field(..., min_length=1, max_length=64)
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar: Optional[str] = None
    password: Optional[str] = Field(None, description="Credential hash, never exposed")

    def public(self) -> dict:
        return self.model_dump(mode='json', exclude={'password'})


class Chat(BaseModel):
    """
    Direct (two members) or group (three or more members, one admin) chat
    Collection: "chats"
    """
    id: str = Field(default_factory=new_id)
    name: str
    is_group: bool = False
    members: List[str] = Field(default_factory=list)
    admin: Optional[str] = None
    latest_message: Optional[str] = Field(None, description="Id of the newest message")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Message(BaseModel):
    """
    Message within a chat
    Collection: "messages"
    """
    id: str = Field(default_factory=new_id)
    chat: str
    sender: str
    content: str = Field(..., min_length=1, max_length=4000)
    created_at: datetime = Field(default_factory=utcnow)


# Request bodies

class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateGroup(_Body):
    name: Optional[str] = None
    users: List[str] = Field(default_factory=list)


class RenameGroup(_Body):
    chat_id: str = Field(..., alias='chatId')
    chat_name: Optional[str] = Field(None, alias='chatName')


class GroupMember(_Body):
    chat_id: str = Field(..., alias='chatId')
    user_id: str = Field(..., alias='userId')


class SendMessage(_Body):
    chat_id: str = Field(..., alias='chatId')
    content: str
