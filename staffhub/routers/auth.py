from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import ValidationError
from sqlalchemy.orm import Session

from staffhub.audit import client_ip, log_audit, user_agent
from staffhub.db import get_db
from staffhub.errors import ApiError
from staffhub.models import AuditActorType, DocumentType
from staffhub.schemas import (
    DocumentUploadResponse,
    OkResponse,
    ProfileRead,
    SessionRead,
    SignInRequest,
    SignUpCredentials,
    SignUpMetadata,
    SignUpResponse,
    UserRead,
)
from staffhub.security import (
    CurrentUser,
    bearer_scheme,
    require_api_key,
    require_user,
    sign_in_throttle,
)
from staffhub.services.auth import (
    DocumentUpload,
    authenticate,
    issue_session,
    session_of,
    sign_out,
    sign_up,
    upload_document,
)
from staffhub.services.storage import DocumentStore, get_document_store
from staffhub.settings import get_settings

router = APIRouter(tags=["auth"], dependencies=[Depends(require_api_key)])


def _validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    message = str(errors[0].get("msg") or "Invalid request.")
    return message.removeprefix("Value error, ")


def _read_upload(upload: UploadFile | None) -> DocumentUpload | None:
    if upload is None:
        return None
    content = upload.file.read()
    return DocumentUpload(
        filename=upload.filename or "",
        content=content,
        content_type=upload.content_type,
    )


@router.post("/api/auth/sign-up", response_model=SignUpResponse, status_code=status.HTTP_201_CREATED)
def sign_up_endpoint(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    confirm_password: str | None = Form(default=None),
    metadata: str | None = Form(default=None),
    selfie: UploadFile | None = File(default=None),
    ktp: UploadFile | None = File(default=None),
    kk: UploadFile | None = File(default=None),
    cv: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
) -> SignUpResponse:
    try:
        credentials = SignUpCredentials(email=email, password=password, confirm_password=confirm_password)
        profile_metadata = SignUpMetadata.model_validate_json(metadata) if metadata else None
    except ValidationError as exc:
        raise ApiError(status_code=422, code="VALIDATION_ERROR", message=_validation_message(exc)) from exc

    documents = {
        DocumentType.SELFIE: _read_upload(selfie),
        DocumentType.KTP: _read_upload(ktp),
        DocumentType.KK: _read_upload(kk),
        DocumentType.CV: _read_upload(cv),
    }
    result = sign_up(db, store, credentials, profile_metadata, documents)

    log_audit(
        db,
        actor_type=AuditActorType.USER,
        actor_id=str(result.user.id),
        action="SIGN_UP",
        success=True,
        entity_type="auth_user",
        entity_id=str(result.user.id),
        ip=client_ip(request),
        user_agent=user_agent(request),
        details={
            "profile_written": result.profile is not None,
            "documents": sorted(key.value for key, value in result.document_urls.items() if value),
        },
        request_id=getattr(request.state, "request_id", None),
    )
    return SignUpResponse(
        user=UserRead.model_validate(result.user),
        profile=ProfileRead.model_validate(result.profile) if result.profile is not None else None,
    )


@router.post("/api/auth/sign-in", response_model=SessionRead)
def sign_in_endpoint(
    payload: SignInRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> SessionRead:
    ip = client_ip(request)
    agent = user_agent(request)
    request_id = getattr(request.state, "request_id", None)

    if ip:
        try:
            sign_in_throttle.check(ip)
        except ApiError:
            log_audit(
                db,
                actor_type=AuditActorType.SYSTEM,
                actor_id="auth",
                action="SIGN_IN_FAIL",
                success=False,
                ip=ip,
                user_agent=agent,
                details={"reason": "TOO_MANY_ATTEMPTS"},
                request_id=request_id,
            )
            raise

    user = authenticate(db, payload.email, payload.password)
    if user is None:
        if ip:
            sign_in_throttle.record_failure(ip)
        log_audit(
            db,
            actor_type=AuditActorType.SYSTEM,
            actor_id=payload.email.strip().lower(),
            action="SIGN_IN_FAIL",
            success=False,
            ip=ip,
            user_agent=agent,
            details={"reason": "INVALID_CREDENTIALS"},
            request_id=request_id,
        )
        raise ApiError(status_code=400, code="INVALID_CREDENTIALS", message="Invalid login credentials")

    if ip:
        sign_in_throttle.record_success(ip)

    session = issue_session(db, user, ip=ip, user_agent=agent)
    request.state.actor = "user"
    request.state.actor_id = str(user.id)
    response.set_cookie(
        key=get_settings().session_cookie_name,
        value=session.access_token,
        max_age=session.expires_in,
        httponly=True,
        samesite="lax",
    )

    log_audit(
        db,
        actor_type=AuditActorType.USER,
        actor_id=str(user.id),
        action="SIGN_IN_SUCCESS",
        success=True,
        ip=ip,
        user_agent=agent,
        request_id=request_id,
    )
    return session


@router.post("/api/auth/sign-out", response_model=OkResponse)
def sign_out_endpoint(
    request: Request,
    response: Response,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> OkResponse:
    sign_out(db, current)
    response.delete_cookie(key=get_settings().session_cookie_name)
    log_audit(
        db,
        actor_type=AuditActorType.USER,
        actor_id=str(current.id),
        action="SIGN_OUT",
        success=True,
        ip=client_ip(request),
        user_agent=user_agent(request),
        details={"jti": current.session.jti},
        request_id=getattr(request.state, "request_id", None),
    )
    return OkResponse()


@router.get("/api/auth/session", response_model=SessionRead)
def session_endpoint(
    current: CurrentUser = Depends(require_user),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> SessionRead:
    token = credentials.credentials if credentials is not None else ""
    return session_of(current, token)


@router.get("/api/auth/user", response_model=UserRead)
def user_endpoint(current: CurrentUser = Depends(require_user)) -> UserRead:
    return UserRead.model_validate(current.user)


@router.post("/api/auth/documents/{document_type}", response_model=DocumentUploadResponse)
def upload_document_endpoint(
    document_type: DocumentType,
    file: UploadFile = File(...),
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
) -> DocumentUploadResponse:
    upload = DocumentUpload(filename=file.filename or "", content=file.file.read(), content_type=file.content_type)
    path, public_url = upload_document(db, store, current, document_type, upload)
    return DocumentUploadResponse(document_type=document_type.value, path=path, public_url=public_url)
