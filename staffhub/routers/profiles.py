from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from staffhub.db import get_db
from staffhub.schemas import ProfileRead, ProfileUpdate
from staffhub.security import CurrentUser, require_api_key, require_user
from staffhub.services.auth import get_profile, update_profile

router = APIRouter(tags=["profiles"], dependencies=[Depends(require_api_key)])


@router.get("/api/profiles/me", response_model=ProfileRead)
def my_profile_endpoint(
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> ProfileRead:
    return ProfileRead.model_validate(get_profile(db, current))


@router.patch("/api/profiles/me", response_model=ProfileRead)
def update_my_profile_endpoint(
    payload: ProfileUpdate,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> ProfileRead:
    return ProfileRead.model_validate(update_profile(db, current, payload))


@router.get("/api/profiles/{profile_id}", response_model=ProfileRead)
def profile_endpoint(
    profile_id: uuid.UUID,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> ProfileRead:
    return ProfileRead.model_validate(get_profile(db, current, profile_id))
