"""Relational schema for the wedding site."""
import enum
import uuid
from datetime import date, datetime, timezone
from typing import Any

from flask_sqlalchemy import SQLAlchemy
from pydantic.alias_generators import to_camel

db = SQLAlchemy()


def utcnow() -> datetime:
    # naive UTC, matches what both SQLite and a Postgres `timestamp` hand back
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def _enum_values(enum_cls):
    return [m.value for m in enum_cls]


def enum_column(enum_cls, **kw):
    return db.Column(
        db.Enum(enum_cls, native_enum=False, values_callable=_enum_values, validate_strings=True),
        **kw,
    )


# ---------------- Closed string sets ----------------
class ScheduleIcon(str, enum.Enum):
    clock = "clock"
    users = "users"
    music = "music"
    utensils = "utensils"
    heart = "heart"
    map = "map"
    camera = "camera"
    sparkles = "sparkles"
    calendar = "calendar"
    home = "home"
    car = "car"
    church = "church"
    glass = "glass"
    other = "other"


class PhotoCategory(str, enum.Enum):
    gallery = "gallery"
    pre_wedding = "pre-wedding"
    engagement = "engagement"
    ceremony = "ceremony"
    wedding = "wedding"
    portrait = "portrait"
    reception = "reception"
    other = "other"


class StreamPlatform(str, enum.Enum):
    youtube = "youtube"
    facebook = "facebook"
    zoom = "zoom"
    custom = "custom"


class PopupType(str, enum.Enum):
    welcome = "welcome"
    scroll_end = "scroll_end"


# ---------------- Base ----------------
class Record:
    """Columns and serialization shared by every table."""

    # attribute names never sent to clients
    __private__ = ("singleton_key",)

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict[str, Any]:
        out = {}
        for attr in self.__mapper__.column_attrs:
            if attr.key in self.__private__:
                continue
            value = getattr(self, attr.key)
            if isinstance(value, enum.Enum):
                value = value.value
            elif isinstance(value, (datetime, date)):
                value = value.isoformat()
            out[to_camel(attr.key)] = value
        return out

    def __repr__(self):
        return f"<{type(self).__name__} {self.id}>"


class Timestamped(Record):
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class SingletonRecord(Timestamped):
    # fixed value + unique constraint: the database refuses a second row
    singleton_key = db.Column(db.Integer, nullable=False, unique=True, default=1)


# ---------------- Accounts ----------------
class User(Timestamped, db.Model):
    __tablename__ = "users"
    __private__ = ("password_hash",)

    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    email = db.Column(db.String(200), unique=True)
    first_name = db.Column(db.String(120))
    last_name = db.Column(db.String(120))


# ---------------- Singletons ----------------
class CoupleInfo(SingletonRecord, db.Model):
    __tablename__ = "couple_info"

    bride_name = db.Column(db.String(200), nullable=False)
    groom_name = db.Column(db.String(200), nullable=False)
    bride_photo = db.Column(db.Text)
    groom_photo = db.Column(db.Text)
    bride_description = db.Column(db.Text)
    groom_description = db.Column(db.Text)
    our_story = db.Column(db.Text)
    wedding_date = db.Column(db.DateTime, nullable=False)
    hero_image = db.Column(db.Text)


class Settings(SingletonRecord, db.Model):
    __tablename__ = "settings"

    venue_name = db.Column(db.String(200))
    venue_address = db.Column(db.Text)
    venue_map_link = db.Column(db.Text)        # embeddable maps link, no lat/lng
    venue_phone = db.Column(db.String(50))
    venue_email = db.Column(db.String(200))
    venue_image = db.Column(db.Text)
    event_start_time = db.Column(db.DateTime)
    event_end_time = db.Column(db.DateTime)

    background_music_url = db.Column(db.Text)          # legacy single track
    background_music_type = db.Column(db.String(20))   # youtube | mp3 | upload
    background_music = db.Column(db.JSON)              # [{"url": ..., "name": ...}, ...]

    bride_qr_code_url = db.Column(db.Text)
    groom_qr_code_url = db.Column(db.Text)
    bride_bank_info = db.Column(db.Text)
    groom_bank_info = db.Column(db.Text)

    footer_text = db.Column(db.Text)
    facebook_url = db.Column(db.Text)
    instagram_url = db.Column(db.Text)
    twitter_url = db.Column(db.Text)
    hashtag = db.Column(db.String(120))

    font_heading = db.Column(db.String(80))
    font_body = db.Column(db.String(80))
    font_cursive = db.Column(db.String(80))
    font_serif = db.Column(db.String(80))


class LivestreamInfo(SingletonRecord, db.Model):
    __tablename__ = "livestream_info"

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    platform = enum_column(StreamPlatform, nullable=False, default=StreamPlatform.youtube)
    stream_url = db.Column(db.Text, nullable=False)
    stream_title = db.Column(db.String(200))
    stream_description = db.Column(db.Text)
    start_time = db.Column(db.DateTime)
    end_time = db.Column(db.DateTime)
    thumbnail_url = db.Column(db.Text)
    chat_enabled = db.Column(db.Boolean, nullable=False, default=True)


# ---------------- Collections ----------------
class ScheduleEvent(Timestamped, db.Model):
    __tablename__ = "schedule_events"

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    event_time = db.Column(db.DateTime, nullable=False)
    location = db.Column(db.String(300))
    icon = enum_column(ScheduleIcon)
    order = db.Column(db.Integer, nullable=False, default=0)


class Photo(Timestamped, db.Model):
    __tablename__ = "photos"

    url = db.Column(db.Text, nullable=False)
    caption = db.Column(db.Text)
    category = enum_column(PhotoCategory, nullable=False, default=PhotoCategory.gallery)
    order = db.Column(db.Integer, nullable=False, default=0)


class GuestMessage(Record, db.Model):
    __tablename__ = "guest_messages"

    guest_name = db.Column(db.String(120), nullable=False)
    message = db.Column(db.Text, nullable=False)
    approved = db.Column(db.Boolean, nullable=False, default=False, index=True)


class Rsvp(Record, db.Model):
    __tablename__ = "rsvps"

    guest_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(50))
    attending = db.Column(db.Boolean, nullable=False)
    guest_count = db.Column(db.Integer, nullable=False, default=1)
    meal_preference = db.Column(db.String(120))
    special_requirements = db.Column(db.Text)


class WeddingPartyMember(Timestamped, db.Model):
    __tablename__ = "wedding_party"

    name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text)
    photo_url = db.Column(db.Text)
    order = db.Column(db.Integer, nullable=False, default=0)


class Popup(Timestamped, db.Model):
    __tablename__ = "popups"

    type = enum_column(PopupType, nullable=False, unique=True)
    image_url = db.Column(db.Text, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    title = db.Column(db.String(200))
    description = db.Column(db.Text)


class MusicTrack(Timestamped, db.Model):
    __tablename__ = "music_tracks"

    title = db.Column(db.String(200), nullable=False)
    filename = db.Column(db.Text, nullable=False)      # file name or absolute URL
    artist = db.Column(db.String(200))
    duration = db.Column(db.Integer)                   # seconds
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)


class GuestPhoto(Record, db.Model):
    __tablename__ = "guest_photos"

    url = db.Column(db.Text, nullable=False)
    caption = db.Column(db.Text)
    guest_name = db.Column(db.String(120))
    approved = db.Column(db.Boolean, nullable=False, default=False, index=True)


# backup/restore order
ALL_MODELS = (
    User, CoupleInfo, Settings, LivestreamInfo, ScheduleEvent, Photo,
    GuestMessage, Rsvp, WeddingPartyMember, Popup, MusicTrack, GuestPhoto,
)
