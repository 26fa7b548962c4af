from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from formdesk.db.database import get_db
from formdesk.core.config import settings, logger

router = APIRouter()


@router.get('/health')
def health():
    return {"status": "ok", "service": settings.APP_NAME}


@router.get('/readyz')
async def readyz(db: AsyncSession = Depends(get_db)):
    # Check DB connectivity
    try:
        await db.execute(text('SELECT 1'))
    except SQLAlchemyError:
        logger.exception('Readiness DB check failed')
        raise HTTPException(status_code=503, detail='Not ready')

    return {"status": "ready"}
