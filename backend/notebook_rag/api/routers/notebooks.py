from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from notebook_rag.core.database import get_db
from notebook_rag.core.dependencies import get_storage
from notebook_rag.core.exceptions import NotFoundError, app_error_to_http
from notebook_rag.models import sql_models as models
from notebook_rag import schemas
from notebook_rag.services import notebook_service

router = APIRouter()


@router.get("/", response_model=List[schemas.Notebook])
def read_notebooks(
    user_id: str = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db)
):
    query = db.query(models.Notebook)
    if user_id:
        query = query.filter(models.Notebook.user_id == user_id)
    return query.order_by(models.Notebook.updated_at.desc()).offset(skip).limit(limit).all()


@router.post("/", response_model=schemas.Notebook)
def create_notebook(notebook: schemas.NotebookCreate, db: Session = Depends(get_db)):
    db_notebook = models.Notebook(name=notebook.name, user_id=notebook.user_id)
    db.add(db_notebook)
    db.commit()
    db.refresh(db_notebook)
    return db_notebook


@router.get("/{notebook_id}", response_model=schemas.Notebook)
def read_notebook(notebook_id: int, db: Session = Depends(get_db)):
    notebook = db.query(models.Notebook).filter(models.Notebook.id == notebook_id).first()
    if not notebook:
        raise HTTPException(status_code=404, detail="Notebook not found")
    return notebook


@router.delete("/{notebook_id}")
def delete_notebook(notebook_id: int, db: Session = Depends(get_db), storage=Depends(get_storage)):
    try:
        notebook_service.delete_notebook(db, storage, notebook_id)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)
    return {"ok": True}


@router.get("/{notebook_id}/summary", response_model=schemas.NotebookSummary)
def read_notebook_summary(notebook_id: int, db: Session = Depends(get_db)):
    """
    Title, per-document summaries, up to 8 distinct tags and the source count.
    """
    try:
        return notebook_service.build_notebook_summary(db, notebook_id)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)


@router.get("/{notebook_id}/documents", response_model=List[schemas.Document])
def read_notebook_documents(notebook_id: int, db: Session = Depends(get_db)):
    try:
        notebook_service.get_notebook(db, notebook_id)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)
    return notebook_service.get_documents(db, notebook_id)
