# PURPOSE: /stats summary and per-period completion reports.

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import reports
from ..auth import get_current_user
from ..db_models import now_local
from ..models import PeriodStats, StatsSummary, UserPublic
from ..store_db import all_tasks, get_db

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/summary", response_model=StatsSummary)
def summary(db: Session = Depends(get_db), user: UserPublic = Depends(get_current_user)):
    return reports.summary(all_tasks(db, owner_id=user.id), now_local())


@router.get("/daily", response_model=List[PeriodStats])
def daily(
    days: int = Query(7, ge=1, le=366),
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    return reports.period_stats(all_tasks(db, owner_id=user.id), days, "day", now_local())


@router.get("/weekly", response_model=List[PeriodStats])
def weekly(
    weeks: int = Query(4, ge=1, le=104),
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    return reports.period_stats(all_tasks(db, owner_id=user.id), weeks, "week", now_local())


@router.get("/monthly", response_model=List[PeriodStats])
def monthly(
    months: int = Query(6, ge=1, le=120),
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    return reports.period_stats(all_tasks(db, owner_id=user.id), months, "month", now_local())


@router.get("/annual", response_model=List[PeriodStats])
def annual(
    years: int = Query(2, ge=1, le=50),
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    return reports.period_stats(all_tasks(db, owner_id=user.id), years, "year", now_local())
