"""
Document and policy upload through presigned object-storage URLs.
"""
from typing import Dict, Iterable, Optional

from hrbot.services.hr_api import HrApi, UserId
from hrbot.logger import get_logger

logger = get_logger(__name__)

PDF = "application/pdf"


class UploadError(Exception):
    """Raised when a document cannot be uploaded."""


def _checked_size(content: bytes, max_bytes: int) -> int:
    size = len(content)
    if size > max_bytes:
        raise UploadError(
            f"File too large. Please select a file smaller than {max_bytes // (1024 * 1024)}MB."
        )
    return size


async def upload_document(
    api: HrApi,
    user_id: UserId,
    document_type: str,
    file_name: str,
    content: bytes,
    content_type: str = PDF,
    max_bytes: int = 10 * 1024 * 1024,
    allowed_types: Iterable[str] = (),
) -> Dict[str, str]:
    """Presign, PUT the bytes, and return the stored {name, url} reference."""
    allowed = set(allowed_types)
    if allowed and document_type not in allowed:
        raise UploadError(f"Unknown document type: {document_type}")

    size = _checked_size(content, max_bytes)

    presigned = await api.presign_upload(user_id, file_name, size, document_type)
    if not presigned:
        raise UploadError("Failed to get signed URL")

    if not await api.client.put_presigned(presigned["preSignedUrl"], content, content_type):
        raise UploadError("Upload failed. Please try again.")

    logger.info(
        "Document uploaded",
        user_id=user_id,
        document_type=document_type,
        size=size,
    )
    return {"name": file_name, "url": presigned.get("finalizedUrl") or ""}


async def upload_policy(
    api: HrApi,
    user_id: UserId,
    file_name: str,
    content: bytes,
    content_type: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
) -> None:
    """Presign and PUT a company policy document."""
    size = _checked_size(content, max_bytes)

    signed_url = await api.presign_policy_upload(user_id, file_name, size)
    if not signed_url:
        raise UploadError("Failed to fetch signed URL")

    if not await api.client.put_presigned(
        signed_url, content, content_type or "application/octet-stream"
    ):
        raise UploadError("Policy upload failed")

    logger.info("Policy uploaded", user_id=user_id, file_name=file_name, size=size)
