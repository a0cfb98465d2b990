# PURPOSE: /tasks CRUD, filters, completion, snooze, subtasks, bulk ops, templates.

from typing import Optional, List, Dict
from fastapi import APIRouter, HTTPException, Response, status, Depends
from sqlalchemy.orm import Session

from ..models import (
    Priority,
    SnoozeRequest,
    SnoozeResponse,
    Subtask,
    Task,
    TaskCreate,
    TaskIdList,
    TaskPut,
    TaskTemplate,
    TaskUpdate,
    UserPublic,
)
from ..store_db import (
    get_db,
    list_tasks as db_list_tasks,
    create_task as db_create_task,
    get_task as db_get_task,
    replace_task as db_replace_task,
    update_task as db_update_task,
    delete_task as db_delete_task,
    count_tasks as db_count_tasks,
    complete_task as db_complete_task,
    snooze_task as db_snooze_task,
    toggle_subtask as db_toggle_subtask,
    bulk_delete_tasks as db_bulk_delete,
    bulk_complete_tasks as db_bulk_complete,
)
from ..auth import get_current_user
from ..api.deps import (
    OrderBy,
    OrderDir,
    TaskStatus,
    parse_status,
    parse_priority,
    parse_order_by,
    parse_order_dir,
)

router = APIRouter(prefix="/tasks", tags=["tasks"])

TEMPLATES: List[TaskTemplate] = [
    TaskTemplate(
        id=1,
        name="Daily Morning Routine",
        title="Morning Routine",
        description="Complete morning tasks",
        recurring="daily",
        due_time="08:00",
        priority="high",
        category="personal",
        subtasks=[
            {"text": "Wake up"},
            {"text": "Exercise"},
            {"text": "Breakfast"},
            {"text": "Review daily goals"},
        ],
    ),
    TaskTemplate(
        id=2,
        name="Weekly Review",
        title="Weekly Planning",
        description="Review and plan the week",
        recurring="weekly",
        due_time="18:00",
        priority="medium",
        category="work",
        subtasks=[
            {"text": "Review last week"},
            {"text": "Set goals for next week"},
            {"text": "Schedule important meetings"},
        ],
    ),
    TaskTemplate(
        id=3,
        name="Prayer Reminder",
        title="Prayer Time",
        description="Daily prayer",
        recurring="daily",
        priority="high",
        category="personal",
        reminder_minutes=10,
    ),
    TaskTemplate(
        id=4,
        name="Medication Reminder",
        title="Take Medication",
        description="Daily medication",
        recurring="daily",
        priority="high",
        category="health",
        reminder_minutes=15,
    ),
]


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Task not found")


@router.get("/", response_model=List[Task])
async def list_tasks(
    status: Optional[TaskStatus] = Depends(parse_status),
    priority: Optional[Priority] = Depends(parse_priority),
    category: Optional[str] = None,
    q: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    order_by: OrderBy = Depends(parse_order_by),
    order_dir: OrderDir = Depends(parse_order_dir),
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    response: Response = None,
):
    filters = dict(status=status, priority=priority, category=category, q=q)
    total = db_count_tasks(db, owner_id=user.id, **filters)
    items = db_list_tasks(
        db, owner_id=user.id, **filters,
        limit=limit, offset=offset,
        order_by=order_by, order_dir=order_dir,
    )
    if response is not None:
        response.headers["X-Total-Count"] = str(total)
    return items


@router.get("/pending", response_model=List[Task])
async def list_pending(
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    return db_list_tasks(db, owner_id=user.id, status="pending", limit=0)


@router.get("/templates", response_model=List[TaskTemplate])
async def list_templates():
    return TEMPLATES


@router.post("/", response_model=Task, status_code=status.HTTP_201_CREATED)
async def create_task(
    item: TaskCreate,
    response: Response,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    task = db_create_task(db, item, owner_id=user.id)
    response.headers["Location"] = f"/tasks/{task.id}"
    return task


@router.post("/bulk_delete", status_code=status.HTTP_200_OK)
async def bulk_delete(payload: TaskIdList, db: Session = Depends(get_db), user: UserPublic = Depends(get_current_user)) -> Dict[str, int]:
    deleted = db_bulk_delete(db, payload.ids, owner_id=user.id)
    return {"deleted": deleted}


@router.post("/bulk_complete", status_code=status.HTTP_200_OK)
async def bulk_complete(payload: TaskIdList, db: Session = Depends(get_db), user: UserPublic = Depends(get_current_user)) -> Dict[str, int]:
    updated = db_bulk_complete(db, payload.ids, owner_id=user.id)
    return {"updated": updated}


@router.get("/{task_id}", response_model=Task)
async def get_task(
    task_id: int,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    task = db_get_task(db, task_id, owner_id=user.id)
    if not task:
        raise _not_found()
    return task


@router.put("/{task_id}", response_model=Task)
async def put_task(
    task_id: int,
    item: TaskPut,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    updated = db_replace_task(db, task_id, item, owner_id=user.id)
    if not updated:
        raise _not_found()
    return updated


@router.patch("/{task_id}", response_model=Task)
async def patch_task(
    task_id: int,
    item: TaskUpdate,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    updated = db_update_task(db, task_id, item, owner_id=user.id)
    if not updated:
        raise _not_found()
    return updated


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    ok = db_delete_task(db, task_id, owner_id=user.id)
    if not ok:
        raise _not_found()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{task_id}/complete")
async def complete_task(
    task_id: int,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
) -> Dict[str, str]:
    if not db_complete_task(db, task_id, owner_id=user.id):
        raise _not_found()
    return {"message": "Task marked as complete"}


@router.post("/{task_id}/snooze", response_model=SnoozeResponse)
async def snooze_task(
    task_id: int,
    payload: SnoozeRequest,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    until = db_snooze_task(db, task_id, payload.minutes, owner_id=user.id)
    if until is None:
        raise _not_found()
    return SnoozeResponse(message=f"Task snoozed for {payload.minutes} minutes", snoozed_until=until)


@router.patch("/{task_id}/subtasks/{subtask_id}", response_model=Subtask)
async def toggle_subtask(
    task_id: int,
    subtask_id: int,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    sub = db_toggle_subtask(db, task_id, subtask_id, owner_id=user.id)
    if sub is None:
        raise HTTPException(status_code=404, detail="Subtask not found")
    return sub
