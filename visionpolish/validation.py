"""
Input validation and sanitization for uploads and form fields.
"""
import html
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from .config import MAX_UPLOAD_BYTES, MAX_FILES_PER_UPLOAD, PASSWORD_MIN_LENGTH
from .logger import log_security_event

ACCEPTED_MIME_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/webp"]

EXTENSION_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}

XSS_PATTERNS = [
    re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"<iframe[^>]*>.*?</iframe>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<object[^>]*>.*?</object>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<embed[^>]*>", re.IGNORECASE),
]

SQL_KEYWORDS = re.compile(
    r"\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|EXEC|UNION|SCRIPT)\b", re.IGNORECASE
)

WEAK_PASSWORD_PATTERNS = [
    re.compile(r"123456"),
    re.compile(r"password", re.IGNORECASE),
    re.compile(r"qwerty", re.IGNORECASE),
    re.compile(r"(.)\1{2,}"),
    re.compile(r"^\d+$"),
    re.compile(r"^[a-zA-Z]+$"),
]


@dataclass
class FileCandidate:
    file_name: str
    mime_type: str
    size: int
    data: bytes = b""
    errors: List[str] = field(default_factory=list)


def has_xss_pattern(value: str) -> bool:
    if not isinstance(value, str):
        return False
    return any(pattern.search(value) for pattern in XSS_PATTERNS)


def sanitize_file_name(file_name: str) -> str:
    if not isinstance(file_name, str):
        return "file"
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "", file_name)
    cleaned = re.sub(r"^\.+", "", cleaned)
    return cleaned[:255] or "file"


def sanitize_input(value):
    """HTML-escape free text before it is stored."""
    if not isinstance(value, str):
        return value
    return html.escape(value, quote=True).strip()


def sanitize_search_term(term) -> str:
    if not isinstance(term, str):
        return ""
    term = re.sub(r"[';\"\\]", "", term)
    term = SQL_KEYWORDS.sub("", term)
    return term.strip()[:100]


def file_extension(file_name: str) -> str:
    if "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[-1].lower()


def detect_image_type(image_bytes: bytes) -> str:
    """Detect image type from image bytes using magic bytes"""
    if not image_bytes:
        return 'unknown'

    if image_bytes.startswith(b'\xff\xd8\xff'):
        return 'jpeg'
    elif image_bytes.startswith(b'\x89PNG\r\n\x1a\n'):
        return 'png'
    elif image_bytes.startswith(b'GIF87a') or image_bytes.startswith(b'GIF89a'):
        return 'gif'
    elif image_bytes.startswith(b'RIFF') and len(image_bytes) > 12 and b'WEBP' in image_bytes[:12]:
        return 'webp'
    elif image_bytes.startswith(b'BM'):
        return 'bmp'
    elif image_bytes.startswith(b'II*\x00') or image_bytes.startswith(b'MM\x00*'):
        return 'tiff'
    else:
        return 'unknown'


def validate_file(file_name: str, mime_type: str, size: int, data: Optional[bytes] = None) -> List[str]:
    """
    Check one file before anything touches storage.

    Returns the list of problems; an empty list means the file may be
    uploaded. An extension that disagrees with the declared MIME type is
    both an error and a logged security event.
    """
    errors = []

    if mime_type not in ACCEPTED_MIME_TYPES or size > MAX_UPLOAD_BYTES:
        errors.append("File type or size not allowed for security reasons")

    if has_xss_pattern(file_name):
        errors.append("File name contains invalid characters")

    if sanitize_file_name(file_name) != file_name:
        errors.append("File name contains invalid characters. Please rename your file.")

    if mime_type not in ACCEPTED_MIME_TYPES:
        errors.append("Only JPG, PNG, and WebP files are allowed")

    if size > MAX_UPLOAD_BYTES:
        errors.append(f"File size must be less than {MAX_UPLOAD_BYTES // (1024 * 1024)}MB")

    extension = file_extension(file_name)
    expected = EXTENSION_MIME_TYPES.get(extension)
    if expected and expected != mime_type:
        errors.append("File extension does not match file type. This may be a security risk.")
        log_security_event(
            "suspicious_file_upload",
            file_name=file_name,
            extension=extension,
            mime_type=mime_type,
            expected_mime_type=expected,
        )

    if data:
        # Advisory only: a mislabelled but otherwise valid image is still accepted
        detected = detect_image_type(data)
        if detected != "unknown" and f"image/{detected}" != mime_type.replace("image/jpg", "image/jpeg"):
            log_security_event(
                "content_type_mismatch",
                file_name=file_name,
                declared=mime_type,
                detected=detected,
            )

    return errors


def validate_batch(candidates: List[FileCandidate], max_files: int = MAX_FILES_PER_UPLOAD) -> Tuple[List[FileCandidate], List[FileCandidate], List[str]]:
    """
    Split a batch into accepted and rejected files.

    A rejected file never blocks the others. If the accepted files exceed
    ``max_files`` nothing is accepted and a batch-level error is returned.
    """
    accepted, rejected = [], []
    batch_errors = []

    for candidate in candidates:
        candidate.errors = validate_file(candidate.file_name, candidate.mime_type, candidate.size, candidate.data)
        if candidate.errors:
            rejected.append(candidate)
        else:
            accepted.append(candidate)

    if len(accepted) > max_files:
        batch_errors.append(f"Maximum {max_files} files allowed")
        return [], rejected, batch_errors

    return accepted, rejected, batch_errors


def validate_password(password: str) -> Optional[str]:
    if not password:
        return "Password is required"
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"\d", password):
        return "Password must contain at least one number"
    if not re.search(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]", password):
        return "Password must contain at least one special character"
    if any(pattern.search(password) for pattern in WEAK_PASSWORD_PATTERNS):
        return "Password contains weak patterns. Please choose a stronger password"
    return None


def validate_price(price) -> Optional[str]:
    if price is None or price == "":
        return "Price is required"
    if not re.match(r"^\d+(\.\d{1,2})?$", str(price)):
        return "Please enter a valid price (e.g., 29.99)"
    try:
        if Decimal(str(price)) <= 0:
            return "Price must be greater than 0"
    except InvalidOperation:
        return "Please enter a valid price (e.g., 29.99)"
    return None
