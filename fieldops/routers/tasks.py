from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fieldops.deps import get_company_context, get_scoped_db
from fieldops.models.task import Task
from fieldops.services.company_context import (
    CompanyContext,
    company_scope,
    require_company_id,
    validate_company_ownership,
)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

TASK_PENDING = "pending"
TASK_COMPLETED = "completed"


class TaskCreate(BaseModel):
    description: str = Field(..., min_length=1)
    assigned: List[Any] = Field(default_factory=list)
    due: Optional[date] = None


def clean_assigned(values: List[Any]) -> List[int]:
    """Keep only integer user ids; blanks and junk from the picker are dropped."""
    cleaned: List[int] = []
    for value in values or []:
        if value is None or value == "" or isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if number.is_integer():
            cleaned.append(int(number))
    return cleaned


def serialize_task(task: Task) -> dict:
    return {
        "id": task.id,
        "company_id": task.company_id,
        "description": task.description,
        "assigned": list(task.assigned or []),
        "due": task.due.isoformat() if task.due else None,
        "status": task.status,
        "created_at": task.created_at.isoformat() if task.created_at else None,
        "completed_at": task.completed_at.isoformat() if task.completed_at else None,
    }


def _get_task(db: Session, task_id: int, context: CompanyContext) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    return validate_company_ownership(task, context, detail="Task not found")


@router.get("")
def list_tasks(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    tasks = company_scope(db.query(Task), Task, context).order_by(Task.created_at.desc(), Task.id.desc()).all()
    return [serialize_task(task) for task in tasks]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    description = payload.description.strip()
    if not description:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Description is required")

    task = Task(
        company_id=require_company_id(context),
        description=description,
        assigned=clean_assigned(payload.assigned),
        due=payload.due,
        status=TASK_PENDING,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return serialize_task(task)


@router.delete("/completed")
def delete_completed_tasks(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    """Bulk delete is limited to the session company, god mode included."""
    deleted = (
        db.query(Task)
        .filter(Task.company_id == require_company_id(context))
        .filter(Task.status == TASK_COMPLETED)
        .delete(synchronize_session=False)
    )
    db.commit()
    return {"ok": True, "deleted": deleted}


@router.put("/{task_id}/complete")
def complete_task(
    task_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    task = _get_task(db, task_id, context)
    if task.status != TASK_COMPLETED:
        task.status = TASK_COMPLETED
        task.completed_at = datetime.utcnow()
        db.commit()
        db.refresh(task)
    return serialize_task(task)


@router.delete("/{task_id}")
def delete_task(
    task_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    db.delete(_get_task(db, task_id, context))
    db.commit()
    return {"ok": True}
