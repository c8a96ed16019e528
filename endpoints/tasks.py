from datetime import datetime, time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import connection
from models.hotel import Reservation, Unit
from models.operations import Task
from models.user import User
from schemas.tasks import TaskCreate, TaskUpdate, TaskRead
from utils.dependencies import get_current_user, get_owned, resolve_hotel_id, scope_hotel_ids
from utils.logging_utils import log_event, log_error
from utils.task_engine import apply_task_status
from utils.timezone import get_hotel_today

router = APIRouter(prefix="/tasks", tags=["Tasks"])


def _commit(db: Session, user: User, action: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_error("tasks", user.username, action, str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"{action} failed")


def _get_task(db: Session, user: User, task_id: int) -> Task:
    return get_owned(db, user, Task, task_id, "Task not found")


def _check_same_hotel(obj, hotel_id: int, label: str):
    if obj.hotel_id != hotel_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{label} belongs to another hotel")


@router.get("", response_model=List[TaskRead])
def list_tasks(
    hotel_id: Optional[int] = Query(None),
    unit_id: Optional[int] = Query(None),
    task_status: Optional[str] = Query(None, alias="status"),
    task_type: Optional[str] = Query(None, alias="type"),
    assigned_to: Optional[str] = Query(None),
    reservation_id: Optional[int] = Query(None),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Task).filter(Task.hotel_id.in_(scope_hotel_ids(db, current_user, hotel_id)))
    if unit_id:
        query = query.filter(Task.unit_id == unit_id)
    if task_status:
        query = query.filter(Task.status == task_status)
    if task_type:
        query = query.filter(Task.type == task_type)
    if assigned_to:
        query = query.filter(Task.assigned_to == assigned_to)
    if reservation_id:
        query = query.filter(Task.reservation_id == reservation_id)
    return query.order_by(Task.due_date.asc(), Task.id.asc()).all()


@router.get("/{task_id}", response_model=TaskRead)
def get_task(
    task_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_task(db, current_user, task_id)


@router.post("", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    """Missing fields fall back to: title "Task", type other, priority medium, due today"""
    if payload.unit_id is not None:
        unit = get_owned(db, current_user, Unit, payload.unit_id, "Unit not found")
        hotel_id = unit.hotel_id
        if payload.hotel_id is not None:
            _check_same_hotel(unit, payload.hotel_id, "Unit")
    else:
        hotel_id = resolve_hotel_id(db, current_user, payload.hotel_id)

    if payload.reservation_id is not None:
        reservation = get_owned(db, current_user, Reservation, payload.reservation_id, "Reservation not found")
        _check_same_hotel(reservation, hotel_id, "Reservation")

    data = payload.model_dump(exclude={"hotel_id", "status"})
    if data["due_date"] is None:
        data["due_date"] = datetime.combine(get_hotel_today(), time.min)

    task = Task(hotel_id=hotel_id, status="todo", **data)
    apply_task_status(task, payload.status)
    db.add(task)
    _commit(db, current_user, "Create task")
    db.refresh(task)
    log_event("tasks", current_user.username, "Create task", f"task_id={task.id} type={task.type}")
    return task


@router.put("/{task_id}", response_model=TaskRead)
def update_task(
    payload: TaskUpdate,
    task_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    task = _get_task(db, current_user, task_id)
    data = payload.model_dump(exclude_unset=True)

    if data.get("unit_id") is not None:
        unit = get_owned(db, current_user, Unit, data["unit_id"], "Unit not found")
        _check_same_hotel(unit, task.hotel_id, "Unit")

    new_status = data.pop("status", None)
    for field, value in data.items():
        setattr(task, field, value)
    if new_status is not None:
        apply_task_status(task, new_status)

    _commit(db, current_user, "Update task")
    db.refresh(task)
    log_event("tasks", current_user.username, "Update task", f"task_id={task_id} status={task.status}")
    return task


@router.post("/{task_id}/complete", response_model=TaskRead)
def complete_task(
    task_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    task = _get_task(db, current_user, task_id)
    apply_task_status(task, "completed")
    _commit(db, current_user, "Complete task")
    db.refresh(task)
    log_event("tasks", current_user.username, "Complete task", f"task_id={task_id}")
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: int = Path(..., gt=0),
    db: Session = Depends(connection.get_db),
    current_user: User = Depends(get_current_user),
):
    task = _get_task(db, current_user, task_id)
    db.delete(task)
    _commit(db, current_user, "Delete task")
    log_event("tasks", current_user.username, "Delete task", f"task_id={task_id}")
