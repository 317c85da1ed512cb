"""
HTTP routes for the Dropit API.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile
from fastapi.responses import JSONResponse

from dropit.config import Settings
from dropit.content import ContentService
from dropit.dependencies import (
    get_app_settings,
    get_content_service,
    get_storage_client,
    require_auth,
)
from dropit.errors import (
    AuthenticationExpired,
    AuthenticationRequired,
    InvalidPassword,
    ValidationFailed,
)
from dropit.schemas import (
    ActionResponse,
    AuthRequest,
    AuthResponse,
    AuthStatusResponse,
    ContentPostRequest,
    FileListResponse,
    HealthResponse,
    UploadData,
    UploadedFile,
    UploadResponse,
)
from dropit.security import (
    authenticate_token,
    clear_auth_cookie,
    issue_token,
    set_auth_cookie,
    verify_password,
)
from dropit.storage import StorageClient
from dropit.uploads import (
    build_upload_pathname,
    format_file_size,
    to_uploaded_file,
    validate_upload,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health(
    content: ContentService = Depends(get_content_service),
    storage: StorageClient = Depends(get_storage_client),
):
    return HealthResponse(ok=True, kv=content.storage_name, storage=storage.name)


@router.post("/auth", response_model=AuthResponse)
def login(
    payload: AuthRequest,
    response: Response,
    settings: Settings = Depends(get_app_settings),
):
    if not payload.password:
        raise ValidationFailed("密码不能为空")
    if not verify_password(payload.password, settings):
        logger.info("Rejected login attempt with wrong password")
        raise InvalidPassword()

    set_auth_cookie(response, issue_token(settings), settings)
    return AuthResponse(success=True, message="登录成功")


@router.get("/auth", response_model=AuthStatusResponse)
def auth_status(request: Request, settings: Settings = Depends(get_app_settings)):
    token = request.cookies.get(settings.auth_cookie_name)
    try:
        authenticate_token(token, settings)
    except (AuthenticationRequired, AuthenticationExpired):
        return JSONResponse(status_code=401, content={"authenticated": False})
    return AuthStatusResponse(authenticated=True)


@router.delete("/auth", response_model=AuthResponse)
def logout(response: Response, settings: Settings = Depends(get_app_settings)):
    clear_auth_cookie(response, settings)
    return AuthResponse(success=True, message="登出成功")


@router.get("/content", dependencies=[Depends(require_auth)])
def get_content(
    kind: Optional[str] = Query(None, alias="type"),
    content: ContentService = Depends(get_content_service),
):
    """
    ``type=messages`` returns the chat history (oldest first); anything else
    returns the legacy clipboard value.
    """
    if kind == "messages":
        data = content.list_messages()
    else:
        data = content.get_content()
    return {"success": True, "data": data, "storage": content.storage_name}


@router.post("/content", dependencies=[Depends(require_auth)])
def post_content(
    payload: ContentPostRequest,
    content: ContentService = Depends(get_content_service),
):
    if payload.type == "message":
        if not payload.content or not isinstance(payload.content, str):
            raise ValidationFailed("消息内容不能为空")
        file_data = None
        if payload.fileData is not None:
            file_data = payload.fileData.model_dump(exclude_unset=True)
        message = content.append_message(
            payload.content,
            message_type=payload.messageType or "text",
            file_data=file_data,
        )
        return {"success": True, "message": "消息已添加", "data": message}

    if not isinstance(payload.text, str):
        raise ValidationFailed("文本内容必须是字符串")
    saved = content.save_content(payload.text)
    return {"success": True, "message": "内容已保存", "data": saved}


@router.delete(
    "/content", response_model=ActionResponse, dependencies=[Depends(require_auth)]
)
def delete_content(
    kind: Optional[str] = Query(None, alias="type"),
    content: ContentService = Depends(get_content_service),
):
    if kind == "messages":
        content.clear_messages()
        return ActionResponse(success=True, message="聊天记录已清空")
    content.delete_content()
    return ActionResponse(success=True, message="内容已清空")


@router.post(
    "/upload", response_model=UploadResponse, dependencies=[Depends(require_auth)]
)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    settings: Settings = Depends(get_app_settings),
    storage: StorageClient = Depends(get_storage_client),
):
    if file is None:
        raise ValidationFailed("没有上传文件")

    data = await file.read()
    validate_upload(len(data), file.content_type, settings)

    timestamp = int(time.time() * 1000)
    filename = file.filename or "upload"
    pathname = build_upload_pathname(
        filename, timestamp, settings.upload_prefix, file.content_type
    )
    blob = storage.put(pathname, data, file.content_type)
    logger.info(
        "Stored %s (%s) as %s", filename, format_file_size(len(data)), blob.pathname
    )

    return UploadResponse(
        success=True,
        message="文件上传成功",
        data=UploadData(
            url=blob.url,
            size=len(data),
            type=file.content_type,
            filename=filename,
            uploadedAt=timestamp,
        ),
    )


@router.get(
    "/upload", response_model=FileListResponse, dependencies=[Depends(require_auth)]
)
def list_files(
    settings: Settings = Depends(get_app_settings),
    storage: StorageClient = Depends(get_storage_client),
):
    blobs = storage.list(prefix=settings.upload_prefix, limit=settings.upload_list_limit)
    files = [UploadedFile(**to_uploaded_file(blob)) for blob in blobs]
    return FileListResponse(success=True, data=files)


@router.delete(
    "/upload", response_model=ActionResponse, dependencies=[Depends(require_auth)]
)
def delete_file(
    url: Optional[str] = Query(None),
    storage: StorageClient = Depends(get_storage_client),
):
    if not url:
        raise ValidationFailed("缺少文件 URL")
    storage.delete(url)
    return ActionResponse(success=True, message="文件删除成功")
