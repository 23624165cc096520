from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.db.session import get_db
from app.polling.schemas import PollResponse
from app.polling.services import PollingService

router = APIRouter(prefix="/poll", tags=["polling"])


@router.get("", response_model=PollResponse)
async def poll(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await PollingService(db).snapshot(current_user.id)
