from fastapi import APIRouter, Depends, Query

from api.dependencies import get_chain_store, get_icm_reader
from api.schemas import IcmDailyResponse, IcmDaySchema, IcmLatestResponse
from storage.repositories.chains import ChainRecordStore
from storage.repositories.icm import IcmCountWriter

router = APIRouter(prefix="/icm", tags=["Cross-chain Messages"])


@router.get("/daily", response_model=IcmDailyResponse)
def get_daily_counts(
    days: int = Query(30, ge=1, le=90),
    reader: IcmCountWriter = Depends(get_icm_reader),
    store: ChainRecordStore = Depends(get_chain_store),
):
    """
    Message counts per chain pair for each UTC day, newest day first.
    """
    names = store.names_by_legacy_numeric_id()
    data = [IcmDaySchema.from_day(day, names) for day in reader.daily(days)]
    return IcmDailyResponse(days=days, count=len(data), data=data)


@router.get("/latest", response_model=IcmLatestResponse)
def get_latest_counts(
    reader: IcmCountWriter = Depends(get_icm_reader),
    store: ChainRecordStore = Depends(get_chain_store),
):
    latest = reader.latest_day()
    if latest is None:
        return IcmLatestResponse(data=None)
    return IcmLatestResponse(data=IcmDaySchema.from_day(latest, store.names_by_legacy_numeric_id()))
