"""
Analytics API: dashboard cards and charts.

Provides aggregated data for:
- Drug counts per custody status
- Unresolved alert count
- Scan events per role
- Daily scan volume
- Recent scan feed
"""
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, case
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.core.permissions import SUPPLY_CHAIN_ROLES
from app.models.alert import Alert
from app.models.drug import Drug
from app.models.enums import DrugStatus, Role
from app.models.scan_event import ScanEvent
from app.models.user import User
from app.schemas.scan_event import ScanEventRecord
from app.services import scan_log_service

router = APIRouter()

supply_chain_user = require_roles(*SUPPLY_CHAIN_ROLES)


@router.get("/summary")
def get_analytics_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(supply_chain_user)
):
    """
    Returns: total drugs, per-status counts, unresolved alerts, per-role scan counts, total scans.
    Every enum value is present, zero when unused.
    """
    status_counts = {s.value: 0 for s in DrugStatus}
    for status, count in db.query(Drug.status, func.count(Drug.id)).group_by(Drug.status).all():
        if status in status_counts:
            status_counts[status] = count

    role_counts = {r.value: 0 for r in Role}
    for role, count in db.query(ScanEvent.role, func.count(ScanEvent.id)).group_by(ScanEvent.role).all():
        if role in role_counts:
            role_counts[role] = count

    alert_count = db.query(func.count(Alert.id)).filter(Alert.resolved.is_(False)).scalar() or 0

    return {
        "total_drugs": sum(status_counts.values()),
        "status_counts": status_counts,
        "alert_count": alert_count,
        "role_counts": role_counts,
        "total_scans": sum(role_counts.values()),
    }


@router.get("/daily-scans")
def get_daily_scans(
    days: int = Query(7, ge=1, le=90, description="Number of days to fetch"),
    db: Session = Depends(get_db),
    current_user: User = Depends(supply_chain_user)
):
    """
    Scan volume per day for the bar chart.
    Returns: [{date: "14 Oct", day: "Tue", scans: 12, flagged: 1}, ...]
    """
    end_date = datetime.now(timezone.utc).date()
    start_date = end_date - timedelta(days=days - 1)

    results = db.query(
        func.date(ScanEvent.scanned_at).label("date"),
        func.count(ScanEvent.id).label("scans"),
        func.sum(case((ScanEvent.result == "flagged", 1), else_=0)).label("flagged"),
    ).filter(
        func.date(ScanEvent.scanned_at) >= start_date
    ).group_by(
        func.date(ScanEvent.scanned_at)
    ).all()

    data_dict = {str(r.date): {"scans": r.scans, "flagged": int(r.flagged or 0)} for r in results}

    daily_data = []
    day_names = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    for i in range(days):
        d = start_date + timedelta(days=i)
        entry = data_dict.get(str(d), {"scans": 0, "flagged": 0})
        daily_data.append({
            "date": d.strftime("%d %b"),
            "day": day_names[d.weekday()],
            "scans": entry["scans"],
            "flagged": entry["flagged"],
        })

    return daily_data


@router.get("/scans/recent", response_model=list[ScanEventRecord])
def get_recent_scans(
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(supply_chain_user)
):
    """Newest first, across all drugs."""
    return scan_log_service.list_recent(db, limit=limit)
