from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from staffhub.errors import ApiError
from staffhub.models import AuthSession, AuthUser, DocumentType, Profile
from staffhub.policies import enforce
from staffhub.schemas import (
    ProfileUpdate,
    SessionRead,
    SignUpCredentials,
    SignUpMetadata,
    UserRead,
)
from staffhub.security import CurrentUser, create_access_token, hash_password, verify_password
from staffhub.services.storage import DocumentStore, document_path

logger = logging.getLogger("staffhub.auth")

DOCUMENT_ORDER: tuple[DocumentType, ...] = (
    DocumentType.SELFIE,
    DocumentType.KTP,
    DocumentType.KK,
    DocumentType.CV,
)


@dataclass(frozen=True, slots=True)
class DocumentUpload:
    filename: str
    content: bytes
    content_type: str | None = None


@dataclass(slots=True)
class SignUpResult:
    user: AuthUser
    profile: Profile | None
    document_urls: dict[DocumentType, str | None]


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _url_attribute(document_type: DocumentType) -> str:
    return f"{document_type.value}_url"


def upload_documents(
    store: DocumentStore,
    user_id: uuid.UUID,
    documents: Mapping[DocumentType, DocumentUpload | None] | None,
) -> dict[DocumentType, str | None]:
    """Upload registration documents one after another; a failed upload leaves its URL empty."""
    urls: dict[DocumentType, str | None] = {document_type: None for document_type in DOCUMENT_ORDER}
    for document_type in DOCUMENT_ORDER:
        upload = (documents or {}).get(document_type)
        if upload is None or not upload.content:
            continue
        object_path = document_path(user_id, document_type, upload.filename)
        try:
            stored = store.upload(object_path, upload.content, upsert=True)
        except (OSError, ApiError):
            logger.exception(
                "sign_up_document_upload_failed",
                extra={"user_id": str(user_id), "document_type": document_type.value},
            )
            continue
        urls[document_type] = stored.public_url
    return urls


def upsert_profile(
    db: Session,
    user_id: uuid.UUID,
    metadata: SignUpMetadata,
    document_urls: Mapping[DocumentType, str | None],
) -> Profile:
    profile = db.get(Profile, user_id)
    if profile is None:
        profile = Profile(id=user_id)
        db.add(profile)

    profile.first_name = metadata.first_name
    profile.last_name = metadata.last_name
    profile.alias = metadata.alias
    profile.fuel_name = metadata.alias
    profile.place_of_birth = metadata.place_of_birth
    profile.date_of_birth = metadata.date_of_birth
    profile.religion = metadata.religion
    profile.address = metadata.address
    profile.phone_number = metadata.phone_number
    profile.relative_phone_number = metadata.relative_phone_number
    for document_type in DOCUMENT_ORDER:
        setattr(profile, _url_attribute(document_type), document_urls.get(document_type))
    profile.updated_at = _utcnow()

    db.commit()
    db.refresh(profile)
    return profile


def sign_up(
    db: Session,
    store: DocumentStore,
    credentials: SignUpCredentials,
    metadata: SignUpMetadata | None = None,
    documents: Mapping[DocumentType, DocumentUpload | None] | None = None,
) -> SignUpResult:
    email = normalize_email(credentials.email)
    existing = db.scalar(select(AuthUser.id).where(func.lower(AuthUser.email) == email))
    if existing is not None:
        raise ApiError(status_code=409, code="EMAIL_ALREADY_REGISTERED", message="User already registered")

    user_metadata: dict[str, Any] = {}
    if metadata is not None:
        user_metadata = metadata.model_dump(mode="json")
        user_metadata["full_name"] = metadata.full_name

    user = AuthUser(
        email=email,
        password_hash=hash_password(credentials.password),
        user_metadata=user_metadata,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ApiError(status_code=409, code="EMAIL_ALREADY_REGISTERED", message="User already registered") from exc
    db.refresh(user)
    logger.info("sign_up_user_created", extra={"user_id": str(user.id)})

    document_urls: dict[DocumentType, str | None] = {document_type: None for document_type in DOCUMENT_ORDER}
    profile: Profile | None = None
    if metadata is not None:
        document_urls = upload_documents(store, user.id, documents)
        try:
            profile = upsert_profile(db, user.id, metadata, document_urls)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("sign_up_profile_write_failed", extra={"user_id": str(user.id)})
            profile = None

    return SignUpResult(user=user, profile=profile, document_urls=document_urls)


def authenticate(db: Session, email: str, password: str) -> AuthUser | None:
    user = db.scalar(select(AuthUser).where(func.lower(AuthUser.email) == normalize_email(email)))
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def issue_session(
    db: Session,
    user: AuthUser,
    *,
    ip: str | None = None,
    user_agent: str | None = None,
) -> SessionRead:
    access_token, expires_in, claims = create_access_token(user_id=user.id, email=user.email)
    issued_at = datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc)
    expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
    db.add(
        AuthSession(
            jti=str(claims["jti"]),
            user_id=user.id,
            issued_at=issued_at,
            expires_at=expires_at,
            revoked_at=None,
            last_ip=ip,
            last_user_agent=user_agent,
        )
    )
    user.last_sign_in_at = issued_at
    db.commit()
    db.refresh(user)
    return SessionRead(
        access_token=access_token,
        expires_in=expires_in,
        expires_at=expires_at,
        user=UserRead.model_validate(user),
    )


def sign_out(db: Session, current: CurrentUser) -> None:
    session_row = current.session
    if session_row.revoked_at is None:
        session_row.revoked_at = _utcnow()
        db.commit()
    logger.info("sign_out", extra={"user_id": str(current.id), "jti": session_row.jti})


def session_of(current: CurrentUser, token: str) -> SessionRead:
    expires_at = datetime.fromtimestamp(int(current.claims["exp"]), tz=timezone.utc)
    expires_in = max(0, int((expires_at - _utcnow()) / timedelta(seconds=1)))
    return SessionRead(
        access_token=token,
        expires_in=expires_in,
        expires_at=expires_at,
        user=UserRead.model_validate(current.user),
    )


def get_profile(db: Session, current: CurrentUser, profile_id: uuid.UUID | None = None) -> Profile:
    target_id = profile_id or current.id
    enforce("profiles", user_id=current.id, owner_id=target_id)
    profile = db.get(Profile, target_id)
    if profile is None:
        raise ApiError(status_code=404, code="PROFILE_NOT_FOUND", message="Profile not found.")
    return profile


def update_profile(
    db: Session,
    current: CurrentUser,
    payload: ProfileUpdate,
    profile_id: uuid.UUID | None = None,
) -> Profile:
    target_id = profile_id or current.id
    enforce("profiles", user_id=current.id, owner_id=target_id, write=True)
    profile = db.get(Profile, target_id)
    if profile is None:
        raise ApiError(status_code=404, code="PROFILE_NOT_FOUND", message="Profile not found.")

    changes = payload.model_dump(exclude_unset=True)
    for field_name, value in changes.items():
        setattr(profile, field_name, value)
    if "alias" in changes:
        profile.fuel_name = changes["alias"]
    profile.updated_at = _utcnow()
    db.commit()
    db.refresh(profile)
    logger.info("profile_updated", extra={"user_id": str(current.id), "fields": sorted(changes)})
    return profile


def upload_document(
    db: Session,
    store: DocumentStore,
    current: CurrentUser,
    document_type: DocumentType,
    upload: DocumentUpload,
) -> tuple[str, str]:
    if not upload.content:
        raise ApiError(status_code=422, code="EMPTY_FILE", message="File is empty.")

    object_path = document_path(current.id, document_type, upload.filename)
    stored = store.upload(object_path, upload.content, upsert=True)

    profile = db.get(Profile, current.id)
    if profile is not None:
        setattr(profile, _url_attribute(document_type), stored.public_url)
        profile.updated_at = _utcnow()
        db.commit()
    return stored.path, stored.public_url
