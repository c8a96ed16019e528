from datetime import datetime
from typing import Optional, Literal

from pydantic import BaseModel, Field, ConfigDict

from schemas.common import PartialUpdate


TaskType = Literal["cleaning", "maintenance", "inspection", "other"]
TaskPriority = Literal["low", "medium", "high"]
TaskStatus = Literal["todo", "in-progress", "completed"]


class TaskCreate(BaseModel):
    hotel_id: Optional[int] = None
    title: str = Field("Task", min_length=1, max_length=150)
    description: Optional[str] = None
    type: TaskType = "other"
    unit_id: Optional[int] = None
    reservation_id: Optional[int] = None
    assigned_to: Optional[str] = Field(None, max_length=120)
    due_date: Optional[datetime] = None
    priority: TaskPriority = "medium"
    status: TaskStatus = "todo"


class TaskUpdate(PartialUpdate):
    nullable_fields = ("description", "unit_id", "assigned_to", "due_date")

    title: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    type: Optional[TaskType] = None
    unit_id: Optional[int] = None
    assigned_to: Optional[str] = Field(None, max_length=120)
    due_date: Optional[datetime] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None


class TaskRead(BaseModel):
    id: int
    hotel_id: int
    title: str
    description: Optional[str] = None
    type: str
    unit_id: Optional[int] = None
    reservation_id: Optional[int] = None
    assigned_to: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: str
    status: str
    completed_at: Optional[datetime] = None
    origin: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
