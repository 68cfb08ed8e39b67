"""
Customer photo upload pipeline: validate the batch, then store each accepted
file under an unguessable name. One file failing to store does not stop the
rest of the batch.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from . import storage
from .config import MAX_FILES_PER_UPLOAD
from .errors import StorageError
from .logger import logger, log_security_event
from .validation import FileCandidate, validate_batch


@dataclass
class UploadResult:
    file_name: str
    status: str
    size: int
    mime_type: str
    path: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "file_name": self.file_name,
            "status": self.status,
            "path": self.path,
            "url": self.url,
            "size": self.size,
            "mime_type": self.mime_type,
            "error": self.error,
        }


@dataclass
class BatchResult:
    results: List[UploadResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def uploaded(self) -> List[UploadResult]:
        return [r for r in self.results if r.status == "success"]


def upload_batch(candidates: List[FileCandidate], user_id: str,
                 max_files: int = MAX_FILES_PER_UPLOAD) -> BatchResult:
    accepted, rejected, batch_errors = validate_batch(candidates, max_files)
    batch = BatchResult(errors=batch_errors)

    for candidate in rejected:
        batch.results.append(UploadResult(
            file_name=candidate.file_name,
            status="error",
            size=candidate.size,
            mime_type=candidate.mime_type,
            error="; ".join(candidate.errors),
        ))

    if batch_errors:
        log_security_event("upload_batch_rejected", user_id=user_id, reason=batch_errors[0])
        return batch

    for candidate in accepted:
        path = storage.secure_upload_path(candidate.file_name)
        log_security_event(
            "file_upload_attempt",
            user_id=user_id,
            file_name=candidate.file_name,
            size=candidate.size,
            mime_type=candidate.mime_type,
        )
        try:
            url = storage.upload_file(candidate.data, path, candidate.mime_type)
        except StorageError as e:
            log_security_event("file_upload_error", user_id=user_id, file_name=candidate.file_name, error=e.detail)
            batch.results.append(UploadResult(
                file_name=candidate.file_name,
                status="error",
                size=candidate.size,
                mime_type=candidate.mime_type,
                error=e.detail,
            ))
            continue

        batch.results.append(UploadResult(
            file_name=candidate.file_name,
            status="success",
            size=candidate.size,
            mime_type=candidate.mime_type,
            path=path,
            url=url,
        ))

    logger.info(f"Upload batch for {user_id}: {len(batch.uploaded)} stored, {len(batch.results) - len(batch.uploaded)} failed")
    return batch
