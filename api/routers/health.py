import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from api.dependencies import get_chain_store, get_clock
from api.schemas import HealthResponse
from core.clock import ClockProtocol
from storage.repositories.chains import ChainRecordStore
from storage.repositories.exceptions import RepositoryException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=HealthResponse)
def health_check(
    store: ChainRecordStore = Depends(get_chain_store),
    clock: ClockProtocol = Depends(get_clock),
):
    """
    Liveness plus a database round trip.
    """
    try:
        count = store.count()
    except (RepositoryException, SQLAlchemyError) as e:
        logger.error(f"Health check database error: {e}")
        return HealthResponse(status="degraded", timestamp=clock.now(), database="unavailable")
    return HealthResponse(status="ok", timestamp=clock.now(), database="ok", chains=count)
