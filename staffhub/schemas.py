import uuid
from datetime import date, datetime
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)


class OkResponse(BaseModel):
    ok: bool = True


class BranchCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: str | None = None


class BranchRead(BaseModel):
    id: uuid.UUID
    name: str
    address: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EmployeeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    employee_id: str = Field(min_length=1, max_length=64)
    branch_id: uuid.UUID | None = None
    is_active: bool = True


class EmployeeRead(BaseModel):
    id: uuid.UUID
    name: str
    employee_id: str
    branch_id: uuid.UUID | None = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class EmployeeSummaryRead(BaseModel):
    name: str
    employee_id: str


# Upper bound of the INTEGER radius column.
MAX_RADIUS = 2_147_483_647


class GeofenceLocationForm(BaseModel):
    """Payload of the location dialog, validated before anything is written."""

    name: str
    address: str
    latitude: float
    longitude: float
    radius: int
    assigned_employees: list[uuid.UUID] = Field(
        default_factory=list,
        validation_alias=AliasChoices("assigned_employees", "assignedEmployees"),
    )

    model_config = ConfigDict(allow_inf_nan=False, populate_by_name=True)

    @field_validator("name", "address", mode="before")
    @classmethod
    def _require_text(cls, value: Any, info: ValidationInfo) -> str:
        text_value = "" if value is None else str(value).strip()
        if not text_value:
            raise ValueError(f"{info.field_name.capitalize()} is required")
        return text_value

    @field_validator("latitude", "longitude", "radius", mode="before")
    @classmethod
    def _reject_booleans(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, bool):
            raise ValueError(f"{info.field_name.capitalize()} must be a number")
        return value

    @field_validator("latitude")
    @classmethod
    def _check_latitude(cls, value: float) -> float:
        if not -90 <= value <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        return value

    @field_validator("longitude")
    @classmethod
    def _check_longitude(cls, value: float) -> float:
        if not -180 <= value <= 180:
            raise ValueError("Longitude must be between -180 and 180")
        return value

    @field_validator("radius")
    @classmethod
    def _check_radius(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Radius must be greater than 0")
        if value > MAX_RADIUS:
            raise ValueError(f"Radius must be at most {MAX_RADIUS}")
        return value

    @field_validator("assigned_employees", mode="before")
    @classmethod
    def _default_selection(cls, value: Any) -> Any:
        return [] if value is None else value


class GeofenceLocationRead(BaseModel):
    id: uuid.UUID
    name: str
    address: str
    latitude: float
    longitude: float
    radius: int
    created_at: datetime
    updated_at: datetime
    assigned_employees: list[uuid.UUID] | None = None
    employee_details: list[EmployeeSummaryRead] | None = None

    model_config = ConfigDict(from_attributes=True)


class LocationAssignmentsRead(BaseModel):
    location_id: uuid.UUID
    employee_ids: list[uuid.UUID] = Field(default_factory=list)


class EmployeeLocationsUpdate(BaseModel):
    location_ids: list[uuid.UUID] = Field(default_factory=list)


class EmployeeLocationsRead(BaseModel):
    employee_id: uuid.UUID
    location_ids: list[uuid.UUID] = Field(default_factory=list)


class CircleStyleRead(BaseModel):
    fill_color: str
    fill_opacity: float
    color: str
    weight: int


class MapFeatureRead(BaseModel):
    location_id: uuid.UUID
    name: str
    address: str
    latitude: float
    longitude: float
    radius: int
    selected: bool = False
    circle_style: CircleStyleRead


class MapViewRead(BaseModel):
    center: tuple[float, float]
    zoom: int
    query: str = ""
    match_count: int = 0
    features: list[MapFeatureRead] = Field(default_factory=list)


class SignUpMetadata(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    alias: str | None = None
    place_of_birth: str = Field(min_length=1)
    date_of_birth: date
    religion: str = Field(min_length=1)
    address: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    relative_phone_number: str = Field(min_length=1)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class SignUpCredentials(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    confirm_password: str | None = None

    @model_validator(mode="after")
    def _passwords_match(self) -> "SignUpCredentials":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self


class SignInRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1)


class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    last_sign_in_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class SessionRead(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int
    expires_at: datetime
    user: UserRead


class ProfileRead(BaseModel):
    id: uuid.UUID
    first_name: str | None = None
    last_name: str | None = None
    alias: str | None = None
    fuel_name: str | None = None
    place_of_birth: str | None = None
    date_of_birth: date | None = None
    religion: str | None = None
    address: str | None = None
    phone_number: str | None = None
    relative_phone_number: str | None = None
    selfie_url: str | None = None
    ktp_url: str | None = None
    kk_url: str | None = None
    cv_url: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = Field(default=None, min_length=1)
    alias: str | None = None
    place_of_birth: str | None = Field(default=None, min_length=1)
    date_of_birth: date | None = None
    religion: str | None = Field(default=None, min_length=1)
    address: str | None = Field(default=None, min_length=1)
    phone_number: str | None = Field(default=None, min_length=1)
    relative_phone_number: str | None = Field(default=None, min_length=1)


class SignUpResponse(BaseModel):
    user: UserRead
    profile: ProfileRead | None = None


class DocumentUploadResponse(BaseModel):
    document_type: str
    path: str
    public_url: str
