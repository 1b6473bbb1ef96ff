"""Period and meter reading endpoints."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session, sessionmaker

from waterbill.api.deps import get_app_settings, get_db, get_session_factory, get_staff_user
from waterbill.api.schemas import (
    BillResponse,
    FinalizePeriodRequest,
    FinalizePeriodResponse,
    FinalizeRowRequest,
    FinalizeRowResponse,
    PeriodResponse,
    PeriodStatusResponse,
    ProgressResponse,
    ReadingResponse,
    RecordReadingRequest,
    StartPeriodResponse,
)
from waterbill.config import Settings
from waterbill.models.user import User
from waterbill.services.finalize_service import MeterRowFinalizer
from waterbill.services.outbox_service import process_outbox
from waterbill.services.period_service import PeriodService
from waterbill.services.reading_service import ReadingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["billing"])


def _actor_name(user: User | None) -> str | None:
    return user.username if user else None


@router.post("/periods/{period_key}/start", response_model=StartPeriodResponse)
def start_period(
    period_key: str,
    db: Session = Depends(get_db),  # noqa: B008
    user: User | None = Depends(get_staff_user),  # noqa: B008
) -> StartPeriodResponse:
    service = PeriodService(db)
    result = service.start_period(
        period_key,
        started_by=_actor_name(user),
        actor_id=user.id if user else None,
    )
    progress = service.count_rows(result.period.id)
    return StartPeriodResponse(
        period=PeriodResponse.model_validate(result.period),
        created=result.created,
        skipped=result.skipped,
        progress=ProgressResponse(**progress.as_dict()),
    )


@router.get("/periods/{period_key}", response_model=PeriodStatusResponse)
def get_period(
    period_key: str,
    db: Session = Depends(get_db),  # noqa: B008
) -> PeriodStatusResponse:
    period, progress, rows = PeriodService(db).get_progress(period_key)
    return PeriodStatusResponse(
        period=PeriodResponse.model_validate(period) if period else None,
        progress=ProgressResponse(**progress.as_dict()),
        rows=[ReadingResponse.model_validate(row) for row in rows],
    )


@router.post("/periods/finalize", response_model=FinalizePeriodResponse)
def finalize_period(
    request: FinalizePeriodRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),  # noqa: B008
    session_factory: sessionmaker = Depends(get_session_factory),  # noqa: B008
    settings: Settings = Depends(get_app_settings),  # noqa: B008
    user: User | None = Depends(get_staff_user),  # noqa: B008
) -> FinalizePeriodResponse:
    """Lock a period.

    A refusal because of pending rows is raised as an application error and
    rendered with the progress counts by the app-level handler.
    """
    result = PeriodService(db).finalize_period(
        request.period_key,
        finalized_by=request.finalized_by or _actor_name(user),
        actor_id=user.id if user else None,
    )
    if result.healed_bills:
        background_tasks.add_task(process_outbox, session_factory, settings)
    return FinalizePeriodResponse(
        locked=result.period.is_locked,
        already_locked=result.already_locked,
        period=PeriodResponse.model_validate(result.period),
        progress=ProgressResponse(**result.progress.as_dict()),
    )


@router.put("/meter-readings/{row_id}", response_model=ReadingResponse)
def record_reading(
    row_id: int,
    request: RecordReadingRequest,
    db: Session = Depends(get_db),  # noqa: B008
) -> ReadingResponse:
    row = ReadingService(db).record_reading(row_id, request.end_reading, request.note)
    return ReadingResponse.model_validate(row)


@router.delete("/meter-readings/{row_id}")
def delete_reading(
    row_id: int,
    db: Session = Depends(get_db),  # noqa: B008
) -> dict:
    row = ReadingService(db).soft_delete_row(row_id)
    return {"ok": True, "id": row.id}


@router.post("/meter-readings/finalize-row", response_model=FinalizeRowResponse)
def finalize_row(
    request: FinalizeRowRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),  # noqa: B008
    session_factory: sessionmaker = Depends(get_session_factory),  # noqa: B008
    settings: Settings = Depends(get_app_settings),  # noqa: B008
    user: User | None = Depends(get_staff_user),  # noqa: B008
) -> FinalizeRowResponse:
    result = MeterRowFinalizer(db, settings).finalize_row(
        request.row_id,
        notify=request.notify,
        actor_id=user.id if user else None,
    )
    if result.intent_id is not None:
        background_tasks.add_task(process_outbox, session_factory, settings)
    return FinalizeRowResponse(
        locked=result.locked,
        already_locked=result.already_locked,
        bill=BillResponse.model_validate(result.bill) if result.bill else None,
    )


__all__ = ["router"]
