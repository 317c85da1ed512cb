"""
Pydantic schemas for the Dropit API.

Field names follow the JSON the browser client already speaks (camelCase).
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel


class AuthRequest(BaseModel):
    password: Optional[str] = None


class AuthResponse(BaseModel):
    success: bool
    message: str


class AuthStatusResponse(BaseModel):
    authenticated: bool


class FileData(BaseModel):
    """Attachment metadata; stored as sent, so partial records are kept."""

    url: Optional[str] = None
    filename: Optional[str] = None
    size: Optional[int] = None
    type: Optional[str] = None


class ContentPostRequest(BaseModel):
    """
    Either a chat message (``type == "message"``) or the legacy clipboard
    text. ``content``/``text`` are typed loosely so non-strings can be
    rejected with a specific message. A missing or null ``messageType`` means
    ``"text"``.
    """

    type: Optional[str] = None
    content: Any = None
    messageType: Optional[Literal["text", "file"]] = None
    fileData: Optional[FileData] = None
    text: Any = None


class ActionResponse(BaseModel):
    success: bool
    message: str


class UploadData(BaseModel):
    url: str
    size: int
    type: str
    filename: str
    uploadedAt: int


class UploadResponse(BaseModel):
    success: bool
    message: str
    data: UploadData


class UploadedFile(BaseModel):
    url: str
    pathname: str
    size: int
    type: str
    filename: str
    uploadedAt: int


class FileListResponse(BaseModel):
    success: bool
    data: list[UploadedFile]


class HealthResponse(BaseModel):
    ok: bool
    kv: str
    storage: str
