"""Operational endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from arbiter.database import get_db
from arbiter.schemas.conversation import SweepResponse
from arbiter.services.inactivity_service import sweep_stale_takeovers

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/sweep", response_model=SweepResponse)
def run_sweep(db: Session = Depends(get_db)):
    """Release stale human takeovers now instead of waiting for the next tick."""
    return sweep_stale_takeovers(db)
