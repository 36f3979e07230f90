# witar/core/validation.py
from __future__ import annotations

import html
import os
import re
import secrets
import time
from typing import Optional
from urllib.parse import urlsplit
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_DEPARTMENT_NAME_RE = re.compile(r"^[A-Za-zÀ-ÿñÑ\s\-.]+$")

ALLOWED_DOCUMENT_TYPES: dict[str, tuple[str, ...]] = {
    "application/pdf": (".pdf",),
    "application/msword": (".doc",),
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": (".docx",),
    "application/vnd.ms-excel": (".xls",),
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": (".xlsx",),
    "text/plain": (".txt",),
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/gif": (".gif",),
}

DOCUMENT_CATEGORIES = ("general", "contract", "payroll", "policy", "other")


class DocumentValidationError(ValueError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def sanitize_text(value: Optional[str]) -> str:
    """Trim, collapse whitespace and HTML-escape free text."""
    if value is None:
        return ""
    return html.escape(" ".join(value.split()), quote=True)


def validate_department_name(value: Optional[str]) -> str:
    name = " ".join((value or "").split())
    if len(name) < 2 or len(name) > 50:
        raise ValueError("Department name must be between 2 and 50 characters.")
    if not _DEPARTMENT_NAME_RE.match(name):
        raise ValueError("Department name may only contain letters, spaces, hyphens and dots.")
    return name


def validate_document_title(value: Optional[str]) -> str:
    title = sanitize_text(value)
    if len(title) < 3 or len(title) > 100:
        raise DocumentValidationError("INVALID_TITLE", "Title must be between 3 and 100 characters.")
    return title


def validate_document_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    desc = sanitize_text(value)
    if len(desc) > 500:
        raise DocumentValidationError("INVALID_DESCRIPTION", "Description must be at most 500 characters.")
    return desc or None


def file_extension(filename: Optional[str]) -> str:
    return os.path.splitext(filename or "")[1].lower()


def validate_upload(filename: Optional[str], content_type: Optional[str], size: int, max_bytes: int) -> str:
    """
    Returns the (lowercased) extension to store the file under.
    """
    if size <= 0:
        raise DocumentValidationError("EMPTY_FILE", "The file is empty.")
    if size > max_bytes:
        raise DocumentValidationError(
            "FILE_TOO_LARGE",
            f"The file exceeds the maximum size of {max_bytes // (1024 * 1024)} MB.",
        )

    ctype = (content_type or "").split(";")[0].strip().lower()
    allowed_ext = ALLOWED_DOCUMENT_TYPES.get(ctype)
    if allowed_ext is None:
        raise DocumentValidationError("FILE_TYPE_NOT_ALLOWED", f"File type {ctype or 'unknown'} is not allowed.")

    ext = file_extension(filename)
    if ext not in allowed_ext:
        raise DocumentValidationError(
            "FILE_EXTENSION_NOT_ALLOWED",
            f"Extension {ext or '(none)'} does not match {ctype}.",
        )
    return ext


def safe_storage_name(ext: str) -> str:
    # <timestamp ms>-<random>.<ext>
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{ext}"


def validate_http_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = value.strip()
    if not v:
        return None
    parts = urlsplit(v)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise ValueError("website must be a valid http(s) URL.")
    return v


def validate_timezone(value: Optional[str]) -> str:
    v = (value or "").strip() or "UTC"
    try:
        ZoneInfo(v)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {v}")
    return v


def slugify(value: str) -> str:
    s = value.strip().lower()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    return s.strip("-") or "company"
