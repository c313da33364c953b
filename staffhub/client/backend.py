"""HTTP client for the StaffHub API; any requests-compatible session can be the transport."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import Any

import requests

from staffhub.client.config import ClientConfig
from staffhub.schemas import (
    DocumentUploadResponse,
    EmployeeCreate,
    EmployeeRead,
    GeofenceLocationForm,
    GeofenceLocationRead,
    MapViewRead,
    ProfileRead,
    ProfileUpdate,
    SessionRead,
    SignUpMetadata,
    SignUpResponse,
    UserRead,
)

logger = logging.getLogger("staffhub.client.backend")

FileTuple = tuple[str, bytes, str | None]


class BackendError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class BackendClient:
    def __init__(
        self,
        url: str,
        api_key: str,
        http: Any | None = None,
        timeout: float = 10.0,
    ):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout
        self.session: SessionRead | None = None

    @classmethod
    def from_config(cls, config: ClientConfig, http: Any | None = None) -> "BackendClient":
        return cls(config.url, config.api_key, http=http, timeout=config.timeout_seconds)

    @property
    def access_token(self) -> str | None:
        return self.session.access_token if self.session is not None else None

    def _headers(self) -> dict[str, str]:
        headers = {"apikey": self.api_key}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self.http.request(
                method,
                f"{self.url}{path}",
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.warning("backend_network_error", extra={"method": method, "path": path})
            raise BackendError(status_code=0, code="NETWORK_ERROR", message=str(exc)) from exc

        if response.status_code >= 400:
            code = "HTTP_ERROR"
            message = response.text or "Request failed."
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                code = str(body["error"].get("code") or code)
                message = str(body["error"].get("message") or message)
            logger.info(
                "backend_request_failed",
                extra={"method": method, "path": path, "status_code": response.status_code, "code": code},
            )
            raise BackendError(status_code=response.status_code, code=code, message=message)
        return response

    # auth

    def sign_up(
        self,
        email: str,
        password: str,
        metadata: SignUpMetadata | Mapping[str, Any] | None = None,
        files: Mapping[str, FileTuple | None] | None = None,
        confirm_password: str | None = None,
    ) -> SignUpResponse:
        data: dict[str, str] = {"email": email, "password": password}
        if confirm_password is not None:
            data["confirm_password"] = confirm_password
        if metadata is not None:
            model = metadata if isinstance(metadata, SignUpMetadata) else SignUpMetadata.model_validate(metadata)
            data["metadata"] = model.model_dump_json()
        upload_files = {name: value for name, value in (files or {}).items() if value is not None}
        response = self._request("POST", "/api/auth/sign-up", data=data, files=upload_files or None)
        return SignUpResponse.model_validate(response.json())

    def sign_in(self, email: str, password: str) -> SessionRead:
        response = self._request("POST", "/api/auth/sign-in", json={"email": email, "password": password})
        self.session = SessionRead.model_validate(response.json())
        return self.session

    def sign_out(self) -> None:
        if self.session is None:
            return
        try:
            self._request("POST", "/api/auth/sign-out")
        finally:
            self.session = None

    def get_session(self) -> SessionRead | None:
        if self.session is None:
            return None
        response = self._request("GET", "/api/auth/session")
        self.session = SessionRead.model_validate(response.json())
        return self.session

    def get_user(self) -> UserRead | None:
        if self.session is None:
            return None
        response = self._request("GET", "/api/auth/user")
        return UserRead.model_validate(response.json())

    def upload_file(
        self,
        document_type: str,
        filename: str,
        content: bytes,
        content_type: str | None = None,
    ) -> DocumentUploadResponse:
        response = self._request(
            "POST",
            f"/api/auth/documents/{document_type}",
            files={"file": (filename, content, content_type or "application/octet-stream")},
        )
        return DocumentUploadResponse.model_validate(response.json())

    def get_profile(self) -> ProfileRead:
        return ProfileRead.model_validate(self._request("GET", "/api/profiles/me").json())

    def update_profile(self, payload: ProfileUpdate) -> ProfileRead:
        response = self._request("PATCH", "/api/profiles/me", json=payload.model_dump(mode="json", exclude_unset=True))
        return ProfileRead.model_validate(response.json())

    # locations

    def list_locations(self, query: str | None = None) -> list[GeofenceLocationRead]:
        params = {"q": query} if query else None
        response = self._request("GET", "/api/locations", params=params)
        return [GeofenceLocationRead.model_validate(item) for item in response.json()]

    def get_location(self, location_id: uuid.UUID) -> GeofenceLocationRead:
        return GeofenceLocationRead.model_validate(self._request("GET", f"/api/locations/{location_id}").json())

    def create_location(self, form: GeofenceLocationForm) -> GeofenceLocationRead:
        response = self._request("POST", "/api/locations", json=form.model_dump(mode="json"))
        return GeofenceLocationRead.model_validate(response.json())

    def update_location(self, location_id: uuid.UUID, form: GeofenceLocationForm) -> GeofenceLocationRead:
        response = self._request("PUT", f"/api/locations/{location_id}", json=form.model_dump(mode="json"))
        return GeofenceLocationRead.model_validate(response.json())

    def delete_location(self, location_id: uuid.UUID) -> None:
        self._request("DELETE", f"/api/locations/{location_id}")

    def list_location_employee_ids(self, location_id: uuid.UUID) -> list[uuid.UUID]:
        body = self._request("GET", f"/api/locations/{location_id}/assignments").json()
        return [uuid.UUID(item) for item in body.get("employee_ids", [])]

    def get_map_view(self, query: str | None = None, selected_id: uuid.UUID | None = None) -> MapViewRead:
        params: dict[str, str] = {}
        if query:
            params["q"] = query
        if selected_id is not None:
            params["selected_id"] = str(selected_id)
        response = self._request("GET", "/api/locations/map", params=params or None)
        return MapViewRead.model_validate(response.json())

    def export_locations_xlsx(self, query: str | None = None) -> bytes:
        params = {"q": query} if query else None
        return self._request("GET", "/api/locations/export.xlsx", params=params).content

    # employees

    def list_employees(self, query: str | None = None) -> list[EmployeeRead]:
        params = {"q": query} if query else None
        response = self._request("GET", "/api/employees", params=params)
        return [EmployeeRead.model_validate(item) for item in response.json()]

    def create_employee(self, payload: EmployeeCreate) -> EmployeeRead:
        response = self._request("POST", "/api/employees", json=payload.model_dump(mode="json"))
        return EmployeeRead.model_validate(response.json())

    def list_employee_location_ids(self, employee_id: uuid.UUID) -> list[uuid.UUID]:
        body = self._request("GET", f"/api/employees/{employee_id}/locations").json()
        return [uuid.UUID(item) for item in body.get("location_ids", [])]

    def replace_employee_locations(self, employee_id: uuid.UUID, location_ids: list[uuid.UUID]) -> list[uuid.UUID]:
        body = self._request(
            "PUT",
            f"/api/employees/{employee_id}/locations",
            json={"location_ids": [str(item) for item in location_ids]},
        ).json()
        return [uuid.UUID(item) for item in body.get("location_ids", [])]
