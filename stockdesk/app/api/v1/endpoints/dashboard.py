from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockdesk.app.api.deps import get_app_settings, get_db, require
from stockdesk.app.core.config import Settings
from stockdesk.app.core.permissions import Action
from stockdesk.app.db.models.models_v1 import User
from stockdesk.services.reporting import dashboard_stats, sales_summary

router = APIRouter(prefix="/dashboard")


@router.get("/stats")
def get_stats(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    _: User = Depends(require(Action.dashboard_stats)),
):
    return dashboard_stats(db, low_stock_threshold=settings.low_stock_threshold)


@router.get("/sales-summary")
def get_sales_summary(
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(require(Action.dashboard_sales)),
):
    return sales_summary(db, start_date=start_date, end_date=end_date)
