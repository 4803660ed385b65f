"""Finance panel: profit stats, manual income/expense entries, profit recalculation."""
import logging
import math
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, func, select

from xenostore.core.database import get_db
from xenostore.models import ManualEntry
from xenostore.schemas import ManualEntryCreate, ManualEntryUpdate
from xenostore.services.finance import (
    TIMEFRAMES,
    date_range,
    financial_stats,
    recalculate_order_profits,
    reset_financial_data,
)

router = APIRouter()
log = logging.getLogger("xenostore.finance")


def _entry_json(e: ManualEntry) -> dict:
    return {
        "id": e.id,
        "type": e.type,
        "description": e.description,
        "amount": e.amount,
        "category": e.category,
        "date": e.date.isoformat() if e.date else None,
        "created_by": e.created_by,
        "created_at": e.created_at.isoformat() if e.created_at else None,
    }


@router.get("/stats")
def finance_stats(
    db: Session = Depends(get_db),
    timeframe: str = Query("all"),
    start_date: date | None = None,
    end_date: date | None = None,
):
    if timeframe not in TIMEFRAMES:
        raise HTTPException(status_code=400, detail=f"timeframe must be one of: {', '.join(TIMEFRAMES)}")
    return {"success": True, "data": financial_stats(db, timeframe, start_date, end_date)}


@router.post("/manual-entries", status_code=201)
def manual_entry_create(body: ManualEntryCreate, db: Session = Depends(get_db)):
    entry = ManualEntry(
        type=body.type,
        description=body.description,
        amount=body.amount,
        category=body.category,
        created_by=body.created_by or "admin",
    )
    if body.date is not None:
        entry.date = body.date
    db.add(entry)
    db.commit()
    db.refresh(entry)
    log.info("manual %s entry created: %s %s", entry.type, entry.amount, entry.category)
    return {"success": True, "message": "Manual entry created successfully", "data": _entry_json(entry)}


@router.get("/manual-entries")
def manual_entries_list(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    type: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
):
    stmt = select(ManualEntry)
    count_stmt = select(func.count(ManualEntry.id))
    if type:
        stmt = stmt.where(ManualEntry.type == type)
        count_stmt = count_stmt.where(ManualEntry.type == type)
    window = date_range("custom", start_date, end_date)
    if window:
        stmt = stmt.where(ManualEntry.date >= window[0]).where(ManualEntry.date < window[1])
        count_stmt = count_stmt.where(ManualEntry.date >= window[0]).where(ManualEntry.date < window[1])
    total = db.exec(count_stmt).one() or 0
    skip = (page - 1) * limit
    entries = db.exec(
        stmt.order_by(ManualEntry.date.desc(), ManualEntry.created_at.desc()).offset(skip).limit(limit)
    ).all()
    return {
        "success": True,
        "data": {
            "entries": [_entry_json(e) for e in entries],
            "pagination": {
                "current_page": page,
                "total_pages": math.ceil(total / limit),
                "total_entries": total,
                "has_next": skip + len(entries) < total,
                "has_prev": page > 1,
            },
        },
    }


@router.put("/manual-entries/{entry_id:int}")
def manual_entry_update(entry_id: int, body: ManualEntryUpdate, db: Session = Depends(get_db)):
    entry = db.get(ManualEntry, entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Manual entry not found")
    for key, value in body.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(entry, key, value)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return {"success": True, "message": "Manual entry updated successfully", "data": _entry_json(entry)}


@router.delete("/manual-entries/{entry_id:int}")
def manual_entry_delete(entry_id: int, db: Session = Depends(get_db)):
    entry = db.get(ManualEntry, entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Manual entry not found")
    db.delete(entry)
    db.commit()
    return {"success": True, "message": "Manual entry deleted successfully"}


@router.post("/recalculate-profits")
def recalculate_profits(db: Session = Depends(get_db), force: bool = False):
    results = recalculate_order_profits(db, force=force)
    message = "Force profit data recalculation completed" if force else "Profit data recalculation completed"
    return {"message": message, "results": results}


@router.post("/reset-all-data")
def reset_all_data(db: Session = Depends(get_db), confirm: bool = False):
    # Irreversible; the caller has to ask for it explicitly
    if not confirm:
        raise HTTPException(status_code=400, detail="Pass confirm=true to delete all orders and manual entries")
    results = reset_financial_data(db)
    return {"success": True, "message": "All financial data has been reset successfully", "results": results}
