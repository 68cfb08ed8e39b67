from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import catalog, crud, schemas
from ..database import get_db

router = APIRouter(tags=["catalog"])


@router.get("/services", response_model=List[schemas.Service])
def list_services(category: Optional[str] = None, search: Optional[str] = None, db: Session = Depends(get_db)):
    return catalog.list_services(db, category=category, search=search)


@router.get("/services/{service_id}", response_model=schemas.Service)
def get_service(service_id: str, db: Session = Depends(get_db)):
    service = crud.get_service(db, service_id)
    if service is None or not service.is_active:
        raise HTTPException(status_code=404, detail="Service not found")
    return service
