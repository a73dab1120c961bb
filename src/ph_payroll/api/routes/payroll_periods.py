"""Payroll period API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status

from ph_payroll.api.dependencies import AppSettings, DbSession, Registry, SessionFactory
from ph_payroll.api.schemas import (
    EntryDetailResponse,
    EntryListResponse,
    EntrySummaryResponse,
    ErrorResponse,
    PeriodCreate,
    PeriodGenerateRequest,
    PeriodListResponse,
    PeriodResponse,
    RunReportResponse,
    RunRequest,
    TransitionRequest,
)
from ph_payroll.models.payroll import PayrollEntry, PayrollPeriod
from ph_payroll.services.period_service import PeriodService
from ph_payroll.services.run_orchestrator import PayrollRunOrchestrator

router = APIRouter(prefix="/payroll-periods", tags=["payroll-periods"])


async def _require_period(service: PeriodService, period_id: UUID) -> PayrollPeriod:
    period = await service.get_period(period_id)
    if not period:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Payroll period {period_id} not found",
        )
    return period


async def _require_entry(
    service: PeriodService, period_id: UUID, entry_id: UUID
) -> PayrollEntry:
    entry = await service.get_entry(entry_id)
    if not entry or entry.payroll_period_id != period_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Payroll entry {entry_id} not found",
        )
    return entry


# ============================================================================
# Period CRUD
# ============================================================================


@router.post(
    "",
    response_model=PeriodResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_period(
    db: DbSession,
    registry: Registry,
    payload: PeriodCreate,
) -> PeriodResponse:
    """Create a payroll period in draft status."""
    service = PeriodService(db, registry)
    try:
        period = await service.create_period(
            name=payload.name,
            cutoff_start=payload.cutoff_start,
            cutoff_end=payload.cutoff_end,
            pay_date=payload.pay_date,
            pay_frequency=payload.pay_frequency,
            period_number=payload.period_number,
            actor=payload.actor,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    await db.commit()
    return PeriodResponse.model_validate(period)


@router.get("", response_model=PeriodListResponse)
async def list_periods(
    db: DbSession,
    registry: Registry,
    year: Annotated[int | None, Query(ge=2000, le=2100)] = None,
    period_status: Annotated[str | None, Query(alias="status")] = None,
) -> PeriodListResponse:
    """List payroll periods, optionally filtered by year and status."""
    periods = await PeriodService(db, registry).list_periods(year, period_status)
    return PeriodListResponse(
        items=[PeriodResponse.model_validate(p) for p in periods],
        total=len(periods),
    )


@router.post(
    "/generate",
    response_model=PeriodListResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def generate_periods(
    db: DbSession,
    registry: Registry,
    payload: PeriodGenerateRequest,
) -> PeriodListResponse:
    """Generate a year of draft periods; existing cutoffs are skipped."""
    service = PeriodService(db, registry)
    try:
        periods = await service.generate_periods(
            payload.year,
            pay_frequency=payload.pay_frequency,
            pay_date_adjustment=payload.pay_date_adjustment,
            actor=payload.actor,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    await db.commit()
    return PeriodListResponse(
        items=[PeriodResponse.model_validate(p) for p in periods],
        total=len(periods),
    )


@router.get(
    "/{period_id}",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_period(
    db: DbSession,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
) -> PeriodResponse:
    period = await _require_period(PeriodService(db, registry), period_id)
    return PeriodResponse.model_validate(period)


# ============================================================================
# Period transitions
# ============================================================================


@router.post(
    "/{period_id}/open",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def open_period(
    db: DbSession,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
    payload: TransitionRequest | None = None,
) -> PeriodResponse:
    """Open a draft period, or reopen a computed/approved one."""
    payload = payload or TransitionRequest()
    service = PeriodService(db, registry)
    period = await _require_period(service, period_id)

    if period.status == "draft":
        period = await service.open_period(period_id, payload.actor)
    else:
        period = await service.reopen_period(period_id, payload.actor, payload.reason)
    await db.commit()
    return PeriodResponse.model_validate(period)


@router.post(
    "/{period_id}/mark-computed",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def mark_period_computed(
    db: DbSession,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
    payload: TransitionRequest | None = None,
) -> PeriodResponse:
    """Move an open period to computed; failed employees block unless allowed."""
    payload = payload or TransitionRequest()
    service = PeriodService(db, registry)
    await _require_period(service, period_id)

    period = await service.mark_computed(period_id, payload.actor, payload.allow_failures)
    await db.commit()
    return PeriodResponse.model_validate(period)


@router.post(
    "/{period_id}/approve",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_period(
    db: DbSession,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
    payload: TransitionRequest | None = None,
) -> PeriodResponse:
    """Approve a computed period and all of its computed entries."""
    payload = payload or TransitionRequest()
    service = PeriodService(db, registry)
    await _require_period(service, period_id)

    period = await service.approve_period(period_id, payload.actor)
    await db.commit()
    return PeriodResponse.model_validate(period)


@router.post(
    "/{period_id}/close",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def close_period(
    db: DbSession,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
    payload: TransitionRequest | None = None,
) -> PeriodResponse:
    """Close an approved period. Closed periods are immutable."""
    payload = payload or TransitionRequest()
    service = PeriodService(db, registry)
    period = await _require_period(service, period_id)

    period = await service.close_period(period, payload.actor, payload.reason)
    await db.commit()
    return PeriodResponse.model_validate(period)


@router.post(
    "/{period_id}/reopen",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reopen_period(
    db: DbSession,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
    payload: TransitionRequest | None = None,
) -> PeriodResponse:
    """Return a computed or approved period to open; approved entries go back to draft."""
    payload = payload or TransitionRequest()
    service = PeriodService(db, registry)
    await _require_period(service, period_id)

    period = await service.reopen_period(period_id, payload.actor, payload.reason)
    await db.commit()
    return PeriodResponse.model_validate(period)


# ============================================================================
# Payroll runs
# ============================================================================


@router.post(
    "/{period_id}/run",
    response_model=RunReportResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def run_period(
    db: DbSession,
    session_factory: SessionFactory,
    settings: AppSettings,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
    payload: RunRequest | None = None,
) -> RunReportResponse:
    """Compute every eligible employee of an open or computed period."""
    payload = payload or RunRequest()
    await _require_period(PeriodService(db, registry), period_id)
    # The run works in its own sessions
    await db.close()

    orchestrator = PayrollRunOrchestrator(session_factory, settings=settings, registry=registry)
    report = await orchestrator.run(period_id, concurrency=payload.concurrency, actor=payload.actor)
    return RunReportResponse.model_validate(report)


@router.post(
    "/{period_id}/employees/{employee_id}/recompute",
    response_model=EntryDetailResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def recompute_employee(
    db: DbSession,
    session_factory: SessionFactory,
    settings: AppSettings,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
    employee_id: Annotated[UUID, Path()],
    payload: TransitionRequest | None = None,
) -> EntryDetailResponse:
    """Recompute one employee and refresh the period totals."""
    payload = payload or TransitionRequest()
    service = PeriodService(db, registry)
    await _require_period(service, period_id)

    orchestrator = PayrollRunOrchestrator(session_factory, settings=settings, registry=registry)
    result = await orchestrator.recompute_employee(period_id, employee_id, payload.actor)

    entry = await service.get_entry(result.payroll_entry_id)
    return EntryDetailResponse.model_validate(entry)


# ============================================================================
# Entries
# ============================================================================


@router.get(
    "/{period_id}/entries",
    response_model=EntryListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_entries(
    db: DbSession,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
) -> EntryListResponse:
    service = PeriodService(db, registry)
    await _require_period(service, period_id)

    entries = await service.list_entries(period_id)
    return EntryListResponse(
        items=[EntrySummaryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )


@router.get(
    "/{period_id}/entries/{entry_id}",
    response_model=EntryDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_entry(
    db: DbSession,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
    entry_id: Annotated[UUID, Path()],
) -> EntryDetailResponse:
    """Get an entry with its earnings and deductions in sequence order."""
    entry = await _require_entry(PeriodService(db, registry), period_id, entry_id)
    return EntryDetailResponse.model_validate(entry)


@router.post(
    "/{period_id}/entries/{entry_id}/approve",
    response_model=EntrySummaryResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_entry(
    db: DbSession,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
    entry_id: Annotated[UUID, Path()],
    payload: TransitionRequest | None = None,
) -> EntrySummaryResponse:
    payload = payload or TransitionRequest()
    service = PeriodService(db, registry)
    await _require_entry(service, period_id, entry_id)

    entry = await service.approve_entry(entry_id, payload.actor)
    await db.commit()
    return EntrySummaryResponse.model_validate(entry)


@router.post(
    "/{period_id}/entries/{entry_id}/reject",
    response_model=EntrySummaryResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reject_entry(
    db: DbSession,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
    entry_id: Annotated[UUID, Path()],
    payload: TransitionRequest | None = None,
) -> EntrySummaryResponse:
    """Send a computed entry back to draft and refresh the period totals."""
    payload = payload or TransitionRequest()
    service = PeriodService(db, registry)
    await _require_entry(service, period_id, entry_id)

    entry = await service.reject_entry(entry_id, payload.actor, payload.reason)
    await service.aggregate_totals(period_id)
    await db.commit()
    return EntrySummaryResponse.model_validate(entry)


@router.post(
    "/{period_id}/entries/{entry_id}/reopen",
    response_model=EntrySummaryResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reopen_entry(
    db: DbSession,
    registry: Registry,
    period_id: Annotated[UUID, Path()],
    entry_id: Annotated[UUID, Path()],
    payload: TransitionRequest | None = None,
) -> EntrySummaryResponse:
    """Reopen an approved entry so it can be recomputed."""
    payload = payload or TransitionRequest()
    service = PeriodService(db, registry)
    await _require_entry(service, period_id, entry_id)

    entry = await service.reopen_entry(entry_id, payload.actor, payload.reason)
    await service.aggregate_totals(period_id)
    await db.commit()
    return EntrySummaryResponse.model_validate(entry)
