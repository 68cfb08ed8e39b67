from typing import List
from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from .. import crud, orders, schemas
from ..access import editor_only, staff_only
from ..database import get_db
from ..session import SessionContext

router = APIRouter(tags=["editor"])


@router.get("/editor/items", response_model=List[schemas.EditorItemView])
def editor_dashboard(session: SessionContext = Depends(editor_only), db: Session = Depends(get_db)):
    """Items whose effective editor is the caller"""
    return [orders.describe_editor_item(item) for item in crud.list_order_items_for_editor(db, session.user.id)]


@router.post("/editor/orders/{order_id}/start", response_model=schemas.Order)
def start_work(order_id: str, session: SessionContext = Depends(editor_only), db: Session = Depends(get_db)):
    return orders.start_work(db, order_id, session)


@router.post("/editor/items/{order_item_id}/result", response_model=schemas.EditorUploadResponse)
async def upload_result(
    order_item_id: str,
    file: UploadFile = File(...),
    session: SessionContext = Depends(editor_only),
    db: Session = Depends(get_db),
):
    data = await file.read()
    return await run_in_threadpool(
        orders.editor_upload_result,
        db, order_item_id, session, file.filename or "edited.jpg", file.content_type or "", data
    )


@router.get("/editors", response_model=List[schemas.Editor])
def list_editors(session: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    return [
        {"id": row["profile"].id, "full_name": row["profile"].full_name, "role": row["profile"].role, "email": row["email"]}
        for row in crud.list_editors(db)
    ]
