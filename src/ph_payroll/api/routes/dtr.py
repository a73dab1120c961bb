"""Daily time record API endpoints."""

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select

from ph_payroll.api.dependencies import AppSettings, DbSession
from ph_payroll.api.schemas import (
    DtrComputeRequest,
    DtrListResponse,
    DtrResponse,
    ErrorResponse,
)
from ph_payroll.attendance.dtr_service import DtrService
from ph_payroll.models.attendance import DailyTimeRecord
from ph_payroll.models.employee import Employee

router = APIRouter(prefix="/dtr", tags=["dtr"])


@router.post(
    "/compute",
    response_model=DtrListResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def compute_dtr(
    db: DbSession,
    settings: AppSettings,
    payload: DtrComputeRequest,
) -> DtrListResponse:
    """Compute and store DTRs for one employee over a date range.

    Days inside a closed payroll period are refused.
    """
    end_date = payload.end_date or payload.start_date
    if end_date < payload.start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date",
        )

    employee = await db.get(Employee, payload.employee_id)
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee {payload.employee_id} not found",
        )

    service = DtrService(db, settings.punch_window_lead_minutes)
    records = await service.compute_range(
        payload.employee_id, payload.start_date, end_date, datetime.now()
    )
    await db.commit()

    return DtrListResponse(
        items=[DtrResponse.model_validate(r) for r in records],
        total=len(records),
    )


@router.get("", response_model=DtrListResponse)
async def list_dtrs(
    db: DbSession,
    employee_id: Annotated[UUID, Query()],
    start_date: Annotated[date, Query()],
    end_date: Annotated[date, Query()],
    needs_review: Annotated[bool | None, Query()] = None,
) -> DtrListResponse:
    """List stored DTRs for an employee, optionally only the ones flagged for review."""
    query = (
        select(DailyTimeRecord)
        .where(
            DailyTimeRecord.employee_id == employee_id,
            DailyTimeRecord.work_date >= start_date,
            DailyTimeRecord.work_date <= end_date,
        )
        .order_by(DailyTimeRecord.work_date)
    )
    if needs_review is not None:
        query = query.where(DailyTimeRecord.needs_review == needs_review)

    result = await db.execute(query)
    records = result.scalars().all()
    return DtrListResponse(
        items=[DtrResponse.model_validate(r) for r in records],
        total=len(records),
    )
