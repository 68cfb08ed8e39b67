from typing import List
from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool

from .. import schemas, uploads
from ..access import get_current_session
from ..config import UPLOAD_RATE_LIMIT
from ..ratelimit import limiter
from ..session import SessionContext
from ..validation import FileCandidate

router = APIRouter(tags=["uploads"])


@router.post("/uploads", response_model=schemas.UploadBatchResponse)
@limiter.limit(UPLOAD_RATE_LIMIT)
async def upload_photos(
    request: Request,
    files: List[UploadFile] = File(...),
    session: SessionContext = Depends(get_current_session),
):
    """Validate and store a batch of customer photos; each file reports its own outcome"""
    candidates = []
    for upload in files:
        data = await upload.read()
        candidates.append(FileCandidate(
            file_name=upload.filename or "",
            mime_type=upload.content_type or "",
            size=len(data),
            data=data,
        ))

    # boto3 calls block, keep them off the event loop
    batch = await run_in_threadpool(uploads.upload_batch, candidates, session.user.id)
    return {"results": [result.as_dict() for result in batch.results], "errors": batch.errors}
