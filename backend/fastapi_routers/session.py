"""
Session router - persistence notifications and write flushing
"""

from fastapi import APIRouter

from fastapi_models import MessageResponse, NotificationsResponse, PersistenceNotification
from fastapi_routers.dependencies import CharacterSessionDep

router = APIRouter()


@router.get("/notifications/", response_model=NotificationsResponse)
async def get_notifications(session: CharacterSessionDep):
    """Background writes that failed since the last clear"""
    notifications = [PersistenceNotification(**n) for n in session.get_notifications()]
    return NotificationsResponse(notifications=notifications, count=len(notifications))


@router.delete("/notifications/", response_model=MessageResponse)
async def clear_notifications(session: CharacterSessionDep):
    cleared = session.clear_notifications()
    return MessageResponse(message=f"Cleared {cleared} notifications")


@router.post("/session/flush/", response_model=MessageResponse)
async def flush_session(session: CharacterSessionDep):
    """Wait for every scheduled character write to finish"""
    pending = session.pending_writes
    await session.flush()
    return MessageResponse(message=f"Flushed {pending} pending writes")
