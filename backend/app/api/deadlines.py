"""
Deadlines API Endpoints
Tax deadline reminders
"""
from fastapi import APIRouter, Depends, Query

from app.core.auth import AuthUser, get_current_user
from app.core.errors import ResourceNotFoundError
from app.domain.deadline import DeadlineCreate
from app.repositories import DeadlineRepository

router = APIRouter()


@router.get("/")
async def list_deadlines(
    include_completed: bool = Query(True),
    user: AuthUser = Depends(get_current_user),
):
    deadlines = DeadlineRepository().find_all(user.id, include_completed=include_completed)
    return {"status": "success", "count": len(deadlines), "data": [d.to_dict() for d in deadlines]}


@router.post("/", status_code=201)
async def create_deadline(data: DeadlineCreate, user: AuthUser = Depends(get_current_user)):
    deadline = DeadlineRepository().create(user.id, data)
    return {"status": "success", "data": deadline.to_dict()}


@router.post("/{deadline_id}/toggle")
async def toggle_deadline(deadline_id: str, user: AuthUser = Depends(get_current_user)):
    deadline = DeadlineRepository().toggle_complete(user.id, deadline_id)
    if not deadline:
        raise ResourceNotFoundError("Deadline", deadline_id)

    return {"status": "success", "data": deadline.to_dict()}


@router.delete("/{deadline_id}")
async def delete_deadline(deadline_id: str, user: AuthUser = Depends(get_current_user)):
    if not DeadlineRepository().delete(user.id, deadline_id):
        raise ResourceNotFoundError("Deadline", deadline_id)

    return {"status": "success", "message": "Deadline deleted"}
