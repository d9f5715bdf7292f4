"""
Read API dependencies.

The session factory and clock live on ``app.state`` (set by
create_app), so tests can build an app around any database.
"""

from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from core.clock import ClockProtocol
from storage.repositories.chains import ChainRecordStore
from storage.repositories.icm import IcmCountWriter
from storage.repositories.metrics import MetricSeriesWriter


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_clock(request: Request) -> ClockProtocol:
    return request.app.state.clock


def get_chain_store(db: Session = Depends(get_db)) -> ChainRecordStore:
    return ChainRecordStore(db)


def get_metric_reader(
    request: Request,
    db: Session = Depends(get_db),
) -> MetricSeriesWriter:
    return MetricSeriesWriter(
        db,
        history_days=request.app.state.history_days,
        clock=request.app.state.clock,
    )


def get_icm_reader(
    request: Request,
    db: Session = Depends(get_db),
) -> IcmCountWriter:
    return IcmCountWriter(
        db,
        history_days=request.app.state.icm_history_days,
        clock=request.app.state.clock,
    )
