# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Public slot catalog and availability routes."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from slotify_server.api.schemas import AvailabilityCell, AvailabilityRequest, SlotResponse
from slotify_server.database import get_db
from slotify_server.services.availability import pair_availability, week_availability
from slotify_server.services.calendar import to_business_day, week_days
from slotify_server.services.catalog import list_slots

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("", response_model=list[SlotResponse])
async def get_slots(db: AsyncSession = Depends(get_db)) -> list[SlotResponse]:
    """Active slots, ordered by weekday then start time."""
    slots = await list_slots(db, active_only=True)
    return [SlotResponse.model_validate(s) for s in slots]


@router.get("/availability", response_model=dict[str, AvailabilityCell])
async def get_week_availability(
    dates: list[str] | None = Query(None, description="Days as YYYY-MM-DD"),
    week_start: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
) -> dict[str, AvailabilityCell]:
    """Availability keyed "<slot_id>|<YYYY-MM-DD>" for every active slot on the given days."""
    if week_start is not None:
        days = week_days(week_start)
    elif dates:
        try:
            days = [to_business_day(d) for d in dates]
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid date, expected YYYY-MM-DD")
    else:
        raise HTTPException(status_code=400, detail="Provide dates or week_start")
    cells = await week_availability(db, days)
    return {key: AvailabilityCell(**cell) for key, cell in cells.items()}


@router.post("/availability", response_model=dict[str, AvailabilityCell])
async def post_pair_availability(
    data: AvailabilityRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, AvailabilityCell]:
    """Availability for explicit (slot, day) pairs."""
    cells = await pair_availability(db, [(s.slot_id, s.date) for s in data.selections])
    return {key: AvailabilityCell(**cell) for key, cell in cells.items()}
