# witar/api/v1/documents.py
from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.deps.company import get_current_company, get_current_membership, require_active_company
from witar.api.deps.permissions import require_permissions
from witar.auth.permissions import PERM
from witar.core.config import settings
from witar.core.notifications import TYPE_DOCUMENT, notify_company, notify_user
from witar.core.roles import ADMIN_ROLES, STAFF_ROLES
from witar.core.storage import document_path, remove_document, save_document
from witar.core.validation import (
    DOCUMENT_CATEGORIES,
    DocumentValidationError,
    safe_storage_name,
    validate_document_description,
    validate_document_title,
    validate_upload,
)
from witar.crud.membership import get_membership
from witar.db.session import get_db
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.document import Document
from witar.models.user import User
from witar.schemas.document import DocumentOut

router = APIRouter(prefix="/documents", tags=["documents"])

logger = logging.getLogger(__name__)


def _visible_to(member: CompanyMembership):
    """Addressed to the member, or company-wide."""
    return or_(Document.user_id == member.user_id, Document.user_id.is_(None))


def _can_see(doc: Document, member: CompanyMembership) -> bool:
    if member.role in STAFF_ROLES:
        return True
    return doc.user_id is None or doc.user_id == member.user_id


async def _get_company_document(db: AsyncSession, company_id: uuid.UUID, document_id: uuid.UUID) -> Document:
    doc = await db.get(Document, document_id)
    if doc is None or doc.company_id != company_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return doc


@router.post("", response_model=DocumentOut, status_code=status.HTTP_201_CREATED)
async def upload_document(
    title: str = Form(...),
    description: Optional[str] = Form(default=None),
    category: str = Form(default="general"),
    user_id: Optional[uuid.UUID] = Form(default=None),
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(require_active_company),
    member: CompanyMembership = Depends(require_permissions(PERM.DOCUMENTS_WRITE)),
):
    category = (category or "").strip().lower()
    if category not in DOCUMENT_CATEGORIES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "error": "INVALID_CATEGORY",
                "message": f"category must be one of: {', '.join(DOCUMENT_CATEGORIES)}",
            },
        )

    # one byte over the cap is enough to reject
    content = await file.read(settings.MAX_UPLOAD_BYTES + 1)

    try:
        clean_title = validate_document_title(title)
        clean_description = validate_document_description(description)
        ext = validate_upload(file.filename, file.content_type, len(content), settings.MAX_UPLOAD_BYTES)
    except DocumentValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": e.code, "message": e.message},
        )

    if user_id is not None and await get_membership(db, company.id, user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="user_id must be an active member of this company",
        )

    storage_name = safe_storage_name(ext)
    doc = Document(
        company_id=company.id,
        uploaded_by=member.user_id,
        user_id=user_id,
        title=clean_title,
        description=clean_description,
        category=category,
        original_filename=file.filename,
        storage_name=storage_name,
        content_type=(file.content_type or "").split(";")[0].strip().lower(),
        file_size=len(content),
    )
    db.add(doc)
    await db.flush()

    uploader = await db.get(User, member.user_id)
    if user_id is not None:
        await notify_user(
            db,
            company_id=company.id,
            recipient_id=user_id,
            sender_id=member.user_id,
            ntype=TYPE_DOCUMENT,
            title="New document",
            message=f"{uploader.display_name} shared \"{clean_title}\" with you",
            data={"document_id": str(doc.id), "category": category},
        )
    else:
        await notify_company(
            db,
            company_id=company.id,
            sender_id=member.user_id,
            ntype=TYPE_DOCUMENT,
            title="New company document",
            message=f"{uploader.display_name} published \"{clean_title}\"",
            data={"document_id": str(doc.id), "category": category},
        )

    save_document(company.id, storage_name, content)
    try:
        await db.commit()
    except Exception:
        remove_document(company.id, storage_name)
        raise

    await db.refresh(doc)
    logger.info("Document %s (%s bytes) uploaded to company %s", doc.id, doc.file_size, company.id)
    return doc


@router.get("", response_model=List[DocumentOut])
async def list_documents(
    category: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.DOCUMENTS_READ)),
):
    """
    Staff see every company document; employees their own plus company-wide ones.
    """
    stmt = select(Document).where(Document.company_id == company.id).order_by(Document.created_at.desc())
    if member.role not in STAFF_ROLES:
        stmt = stmt.where(_visible_to(member))
    if category:
        stmt = stmt.where(Document.category == category.strip().lower())
    return list((await db.execute(stmt)).scalars().all())


@router.get("/me", response_model=List[DocumentOut])
async def my_documents(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    stmt = (
        select(Document)
        .where(Document.company_id == company.id)
        .where(_visible_to(member))
        .order_by(Document.created_at.desc())
    )
    return list((await db.execute(stmt)).scalars().all())


@router.get("/{document_id}/download")
async def download_document(
    document_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    doc = await _get_company_document(db, company.id, document_id)
    if not _can_see(doc, member):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")

    path = document_path(company.id, doc.storage_name)
    if not path.is_file():
        logger.error("Stored file missing for document %s at %s", doc.id, path)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")

    return FileResponse(path, media_type=doc.content_type, filename=doc.original_filename)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    doc = await _get_company_document(db, company.id, document_id)
    if doc.uploaded_by != member.user_id and member.role not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the uploader or an administrator can delete this document",
        )

    storage_name = doc.storage_name
    await db.delete(doc)
    await db.commit()

    remove_document(company.id, storage_name)
    logger.info("Document %s deleted from company %s by %s", document_id, company.id, member.user_id)
    return None
