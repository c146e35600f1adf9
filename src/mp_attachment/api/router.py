"""Attachment REST API: multipart image upload (login required)."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_attachment.application.schemas import AttachmentItem
from src.mp_attachment.application.service import AttachmentService
from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, success_response
from src.mp_gateway.auth.dependencies import get_current_account_id

router = APIRouter(prefix="/attachments", tags=["attachments"])

_service = AttachmentService()


def get_attachment_service() -> AttachmentService:
    return _service


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ApiResponse)
async def upload_attachment(
    request: Request,
    file: Annotated[UploadFile, File(description="jpg, jpeg, png or webp image")],
    uploader_id: Annotated[int, Depends(get_current_account_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AttachmentService, Depends(get_attachment_service)],
) -> ApiResponse:
    attachment = await service.upload(db, uploader_id, file)
    return success_response(AttachmentItem.from_domain(attachment).model_dump(), request)
