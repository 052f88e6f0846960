# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Admin API - slot catalog, email allow-list, reservations. Requires an admin token."""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotify_server.api.schemas import (
    AdminLogin,
    AdminReservation,
    AllowedEmailResponse,
    EmailCreate,
    MessageResponse,
    SlotCreate,
    SlotResponse,
    SlotUpdate,
    Token,
)
from slotify_server.auth import ADMIN_COOKIE_NAME, authenticate_admin, create_access_token, require_admin
from slotify_server.config import settings
from slotify_server.database import get_db
from slotify_server.rate_limit import rate_limit_dep
from slotify_server.services import catalog
from slotify_server.services.calendar import Clock, get_clock

router = APIRouter(prefix="/admin", tags=["admin"])


def _catalog_error(exc: catalog.CatalogError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.post("/login", response_model=Token)
async def login(
    data: AdminLogin,
    response: Response,
    db: AsyncSession = Depends(get_db),
    _: None = Depends(rate_limit_dep),
) -> Token:
    """Authenticate an admin; returns a JWT and sets it as an httponly cookie."""
    admin = await authenticate_admin(db, data.email, data.password)
    if not admin:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    token = create_access_token({"sub": str(admin.id), "role": "admin"})
    response.set_cookie(
        key=ADMIN_COOKIE_NAME,
        value=token,
        max_age=settings.jwt_expire_minutes * 60,
        httponly=True,
        samesite="lax",
    )
    return Token(access_token=token)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    response.delete_cookie(ADMIN_COOKIE_NAME)
    return MessageResponse(message="Logged out")


# Slots
@router.get("/slots", response_model=list[SlotResponse])
async def list_slots(
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[SlotResponse]:
    """All slots, inactive included."""
    slots = await catalog.list_slots(db)
    return [SlotResponse.model_validate(s) for s in slots]


@router.post("/slots", response_model=list[SlotResponse], status_code=201)
async def create_slots(
    data: SlotCreate,
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[SlotResponse]:
    """Create one slot per hour block between start_time and end_time."""
    try:
        slots = await catalog.create_slots(db, data.day_of_week, data.start_time, data.end_time, data.max_capacity)
    except catalog.CatalogError as e:
        raise _catalog_error(e)
    return [SlotResponse.model_validate(s) for s in slots]


@router.patch("/slots/{slot_id}", response_model=SlotResponse)
async def update_slot(
    slot_id: int,
    data: SlotUpdate,
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> SlotResponse:
    try:
        slot = await catalog.update_slot(db, slot_id, **data.model_dump(exclude_unset=True))
    except catalog.CatalogError as e:
        raise _catalog_error(e)
    return SlotResponse.model_validate(slot)


@router.post("/slots/{slot_id}/toggle", response_model=SlotResponse)
async def toggle_slot(
    slot_id: int,
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> SlotResponse:
    """Flip is_active. Existing reservations are kept."""
    try:
        slot = await catalog.toggle_slot(db, slot_id)
    except catalog.CatalogError as e:
        raise _catalog_error(e)
    return SlotResponse.model_validate(slot)


@router.delete("/slots/{slot_id}", response_model=MessageResponse)
async def delete_slot(
    slot_id: int,
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Delete a slot and all of its reservations."""
    try:
        await catalog.delete_slot(db, slot_id)
    except catalog.CatalogError as e:
        raise _catalog_error(e)
    return MessageResponse(message="Slot deleted")


# Allow-list
@router.get("/emails", response_model=list[AllowedEmailResponse])
async def list_emails(
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[AllowedEmailResponse]:
    rows = await catalog.list_emails(db)
    return [
        AllowedEmailResponse(
            id=entry.id,
            email=entry.email,
            created_at=entry.created_at,
            reservations_total=total,
            reservations_active=active,
        )
        for entry, total, active in rows
    ]


@router.post("/emails", response_model=AllowedEmailResponse, status_code=201)
async def add_email(
    data: EmailCreate,
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> AllowedEmailResponse:
    try:
        entry = await catalog.add_email(db, data.email)
    except catalog.CatalogError as e:
        raise _catalog_error(e)
    return AllowedEmailResponse(id=entry.id, email=entry.email, created_at=entry.created_at)


@router.delete("/emails/{email_id}", response_model=MessageResponse)
async def delete_email(
    email_id: int,
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Remove an email from the allow-list. Refused while it holds active reservations."""
    try:
        await catalog.delete_email(db, email_id)
    except catalog.CatalogError as e:
        raise _catalog_error(e)
    return MessageResponse(message="Email removed")


# Reservations
@router.get("/reservations", response_model=list[AdminReservation])
async def list_reservations(
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[AdminReservation]:
    """Every reservation, cancelled included, most recent first."""
    reservations = await catalog.list_reservations(db)
    return [
        AdminReservation(
            id=r.id,
            email=r.allowed_email.email,
            slot_id=r.time_slot_id,
            day_of_week=r.time_slot.day_of_week,
            start_time=r.time_slot.start_time,
            end_time=r.time_slot.end_time,
            date=r.reservation_date,
            cancellation_code=r.cancellation_code,
            created_at=r.created_at,
            cancelled_at=r.cancelled_at,
        )
        for r in reservations
    ]


@router.get("/stats")
async def get_stats(
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> dict:
    """Counts of emails, active slots and reservations. Admin only."""
    return await catalog.get_stats(db, now=clock())
