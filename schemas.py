"""Pydantic input models derived from the table columns."""
from datetime import date, datetime, time, timezone
from typing import Annotated, Any, Optional

from pydantic import (
    AfterValidator, BaseModel, BeforeValidator, ConfigDict, EmailStr, Field,
    StrictBool, StringConstraints, create_model, model_validator,
)
from pydantic.alias_generators import to_camel
from sqlalchemy import types as sqltypes

from models import (
    CoupleInfo, GuestMessage, GuestPhoto, LivestreamInfo, MusicTrack, Photo,
    Popup, Rsvp, ScheduleEvent, Settings, WeddingPartyMember,
)

SERVER_MANAGED = frozenset({"id", "created_at", "updated_at", "singleton_key"})

RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

# range of a 32-bit INTEGER column
INT_MIN, INT_MAX = -2**31, 2**31 - 1


class InputModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------------- Field coercions ----------------
def _coerce_date_like(value):
    """ISO datetime strings pass through; date-only strings and dates become midnight."""
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if len(value) == 10:
            try:
                return datetime.combine(date.fromisoformat(value), time())
            except ValueError:
                return value
    elif isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time())
    return value


def _naive_utc(value):
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def date_like(nullable: bool):
    inner = Optional[datetime] if nullable else datetime
    return Annotated[inner, BeforeValidator(_coerce_date_like), AfterValidator(_naive_utc)]


def _lower(value):
    if isinstance(value, str):
        return value.strip().lower() or None
    return value


def _max_length(limit: int):
    def check(value):
        if value is not None and len(value) > limit:
            raise ValueError(f"must be at most {limit} characters")
        return value
    return check


def _annotation(column, override=None):
    if isinstance(column.type, sqltypes.DateTime):
        return date_like(column.nullable)
    if isinstance(column.type, sqltypes.Enum) and column.type.enum_class is not None:
        inner = column.type.enum_class
        return Annotated[Optional[inner] if column.nullable else inner, BeforeValidator(_lower)]
    if override is not None:
        base = override
    elif isinstance(column.type, sqltypes.String) and not column.nullable:
        base = RequiredText
    else:
        base = column.type.python_type

    length = getattr(column.type, "length", None)
    if isinstance(column.type, sqltypes.String) and length:
        if override is None:
            base = Annotated[base, StringConstraints(max_length=length)]
        else:
            base = Annotated[base, AfterValidator(_max_length(length))]
    elif isinstance(column.type, sqltypes.Integer) and override is None:
        base = Annotated[base, Field(ge=INT_MIN, le=INT_MAX)]
    return Optional[base] if column.nullable else base


def derive(model, *, exclude=(), overrides=None):
    """
    Build (Create, Patch) input models from a table's columns.

    Nullable columns are optional, columns with a scalar default take that
    default, anything else non-nullable is required on create. Patch makes
    every field optional but still rejects an explicit null for a
    non-nullable column.
    """
    overrides = overrides or {}
    create_fields, patch_fields = {}, {}
    for attr in model.__mapper__.column_attrs:
        key = attr.key
        if key in SERVER_MANAGED or key in exclude:
            continue
        column = attr.columns[0]
        ann = _annotation(column, overrides.get(key))
        default = column.default
        if column.nullable:
            create_fields[key] = (ann, None)
        elif default is not None and default.is_scalar:
            create_fields[key] = (ann, default.arg)
        else:
            create_fields[key] = (ann, ...)
        patch_fields[key] = (ann, None)

    name = model.__name__
    create = create_model(f"{name}In", __base__=InputModel, **create_fields)
    patch = create_model(f"{name}Patch", __base__=InputModel, **patch_fields)
    return create, patch


def validate(schema, payload) -> dict[str, Any]:
    """Validate and return only the fields the caller supplied, snake_case keyed."""
    return schema.model_validate(payload).model_dump(exclude_unset=True)


# ---------------- Nested records ----------------
class MusicEntry(InputModel):
    url: RequiredText
    name: Optional[str] = None

    @model_validator(mode="after")
    def _default_name(self):
        if not (self.name or "").strip():
            self.name = self.url.rstrip("/").rsplit("/", 1)[-1]
        return self


# ---------------- Entity schemas ----------------
CoupleInfoIn, CoupleInfoPatch = derive(CoupleInfo)

SettingsIn, SettingsPatch = derive(Settings, overrides={
    "background_music": list[MusicEntry],
})

LivestreamIn, LivestreamPatch = derive(LivestreamInfo)

ScheduleEventIn, ScheduleEventPatch = derive(ScheduleEvent)

PhotoIn, PhotoPatch = derive(Photo)

GuestMessageIn, _ = derive(GuestMessage, exclude=("approved",))

RsvpIn, RsvpPatch = derive(Rsvp, overrides={
    "email": EmailStr,
    "guest_count": Annotated[int, Field(ge=1, le=INT_MAX)],
})

WeddingPartyIn, WeddingPartyPatch = derive(WeddingPartyMember)

PopupIn, PopupPatch = derive(Popup)

MusicTrackIn, MusicTrackPatch = derive(MusicTrack, overrides={
    "duration": Annotated[int, Field(ge=0, le=INT_MAX)],
})

GuestPhotoIn, _ = derive(GuestPhoto, exclude=("approved",))


class ApprovalIn(InputModel):
    approved: StrictBool


# ---------------- Account ----------------
class LoginIn(InputModel):
    username: RequiredText
    password: str = Field(min_length=1)


class ChangePasswordIn(InputModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class ProfileIn(InputModel):
    username: Annotated[RequiredText, StringConstraints(max_length=80)]
    email: Annotated[Optional[EmailStr], BeforeValidator(_blank_to_none), AfterValidator(_max_length(200))] = None
