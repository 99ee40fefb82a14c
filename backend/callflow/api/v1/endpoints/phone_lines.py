"""Phone line management API."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from callflow.core.database import get_db
from callflow.models.phone_line import PhoneLine
from callflow.schemas.phone_lines import PhoneLineCreate, PhoneLineResponse, PhoneLineUpdate
from callflow.services.phone_lines import clear_other_defaults, delete_phone_line, get_phone_line
from callflow.services.routing.exceptions import PhoneLineNotFoundError

router = APIRouter()


def _get_or_404(db: Session, phone_line_id: uuid.UUID) -> PhoneLine:
    try:
        return get_phone_line(db, phone_line_id)
    except PhoneLineNotFoundError:
        raise HTTPException(status_code=404, detail="Phone line not found") from None


@router.get("/", response_model=list[PhoneLineResponse])
def list_phone_lines(
    user_id: uuid.UUID = Query(..., description="Owner user ID"),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
):
    """List a user's phone lines, default line first."""
    query = select(PhoneLine).where(PhoneLine.user_id == user_id)
    if not include_inactive:
        query = query.where(PhoneLine.is_active.is_(True))
    return db.execute(query.order_by(PhoneLine.is_default.desc(), PhoneLine.created_at)).scalars().all()


@router.post("/", response_model=PhoneLineResponse, status_code=201)
def create_phone_line(
    payload: PhoneLineCreate,
    db: Session = Depends(get_db),
):
    """Register a phone number as a line."""
    existing = db.execute(
        select(PhoneLine).where(PhoneLine.phone_number == payload.phone_number)
    ).scalar_one_or_none()

    if existing is not None:
        raise HTTPException(
            status_code=409,
            detail=f"Phone number {payload.phone_number} is already registered",
        )

    line = PhoneLine(**payload.model_dump())
    db.add(line)
    db.flush()
    if line.is_default:
        clear_other_defaults(db, line)
    db.commit()
    db.refresh(line)
    return line


@router.get("/{phone_line_id}", response_model=PhoneLineResponse)
def get_phone_line_endpoint(
    phone_line_id: uuid.UUID,
    db: Session = Depends(get_db),
):
    return _get_or_404(db, phone_line_id)


@router.patch("/{phone_line_id}", response_model=PhoneLineResponse)
def update_phone_line(
    phone_line_id: uuid.UUID,
    payload: PhoneLineUpdate,
    db: Session = Depends(get_db),
):
    line = _get_or_404(db, phone_line_id)

    update_data = payload.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if value is None and field != "forward_to":
            continue
        setattr(line, field, value)

    if update_data.get("is_default"):
        clear_other_defaults(db, line)

    db.commit()
    db.refresh(line)
    return line


@router.delete("/{phone_line_id}", status_code=204)
def delete_phone_line_endpoint(
    phone_line_id: uuid.UUID,
    db: Session = Depends(get_db),
):
    """Delete a line and every routing rule attached to it."""
    try:
        delete_phone_line(db, phone_line_id)
    except PhoneLineNotFoundError:
        raise HTTPException(status_code=404, detail="Phone line not found") from None
