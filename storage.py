"""Repositories over the wedding-site tables."""
import enum
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import types as sqltypes
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from models import (
    ALL_MODELS, CoupleInfo, GuestMessage, GuestPhoto, LivestreamInfo,
    MusicTrack, Photo, Popup, PopupType, Rsvp, ScheduleEvent, Settings, User,
    WeddingPartyMember, db, utcnow,
)


class DuplicateError(Exception):
    """A unique column already holds the submitted value."""


def _bump(row):
    # strictly increasing even when two writes land in the same clock tick;
    # call before assigning, refreshing an expired row autoflushes pending changes
    now = utcnow()
    if row.updated_at is not None and now <= row.updated_at:
        now = row.updated_at + timedelta(microseconds=1)
    row.updated_at = now


def _assign(row, data: dict[str, Any]):
    for key, value in data.items():
        setattr(row, key, value)


def _commit(label: str):
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise DuplicateError(f"{label} already exists") from e


# ---------------- Singletons ----------------
class Singleton:
    def __init__(self, model, label: str):
        self.model = model
        self.label = label

    def get(self):
        return self.model.query.first()

    def upsert(self, data: dict[str, Any]):
        row = self.get()
        if row is None:
            row = self.model(**data)
            db.session.add(row)
            try:
                db.session.commit()
                return row
            except IntegrityError:
                # lost the race for the first insert: update the winner instead
                db.session.rollback()
                row = self.get()
                if row is None:
                    raise
        _bump(row)
        _assign(row, data)
        db.session.commit()
        return row


# ---------------- Collections ----------------
class Collection:
    """
    list/get/create/update/delete over one table.

    `order_column` gives ascending display order (ties broken by insertion
    time); without it rows come back newest first. `flag` is the boolean
    column `list(only=True)` filters on.
    """

    def __init__(self, model, label: str, order_column=None, flag=None):
        self.model = model
        self.label = label
        self.order_column = order_column
        self.flag = flag

    def _ordering(self):
        m = self.model
        if self.order_column is not None:
            return (self.order_column.asc(), m.created_at.asc(), m.id.asc())
        return (m.created_at.desc(), m.id.desc())

    def query(self, only: bool = False):
        q = self.model.query
        if only and self.flag is not None:
            q = q.filter(self.flag.is_(True))
        return q

    def list(self, only: bool = False):
        return self.query(only).order_by(*self._ordering()).all()

    def get(self, row_id: str):
        if not row_id:
            return None
        return db.session.get(self.model, row_id)

    def create(self, data: dict[str, Any]):
        row = self.model(**data)
        db.session.add(row)
        _commit(self.label)
        return row

    def update(self, row_id: str, data: dict[str, Any]):
        row = self.get(row_id)
        if row is None:
            return None
        if hasattr(row, "updated_at"):
            _bump(row)
        _assign(row, data)
        _commit(self.label)
        return row

    def delete(self, row_id: str) -> bool:
        removed = self.model.query.filter_by(id=row_id).delete()
        db.session.commit()
        return bool(removed)


class ApprovableCollection(Collection):
    """Guest-submitted rows; only `approve` touches the approved flag."""

    def __init__(self, model, label: str):
        super().__init__(model, label, flag=model.approved)

    def approve(self, row_id: str, approved: bool):
        row = self.get(row_id)
        if row is None:
            return None
        row.approved = approved
        db.session.commit()
        return row


class ScheduleCollection(Collection):
    def list(self, only: bool = False, when: Optional[str] = None):
        q = self.query(only)
        if when == "upcoming":
            q = q.filter(ScheduleEvent.event_time >= utcnow())
        elif when == "past":
            q = q.filter(ScheduleEvent.event_time < utcnow())
        return q.order_by(*self._ordering()).all()


class PopupCollection(Collection):
    def get_by_type(self, popup_type: str):
        try:
            key = PopupType((popup_type or "").lower())
        except ValueError:
            return None
        return Popup.query.filter_by(type=key).first()


# ---------------- Accounts ----------------
class Users:
    def get(self, user_id) -> Optional[User]:
        if not user_id:
            return None
        return db.session.get(User, user_id)

    def get_by_username(self, username: str) -> Optional[User]:
        return User.query.filter_by(username=username).first()

    def create(self, username: str, password: str, **profile) -> User:
        u = User(username=username, password_hash=generate_password_hash(password), **profile)
        db.session.add(u)
        _commit("User")
        return u

    def set_password(self, user: User, password: str):
        _bump(user)
        user.password_hash = generate_password_hash(password)
        db.session.commit()

    def update_profile(self, user: User, username: str, email: Optional[str]) -> User:
        _bump(user)
        user.username = username
        user.email = email or None
        _commit("Username or email")
        return user


# ---------------- Backup ----------------
def _raw(row) -> dict[str, Any]:
    out = {}
    for attr in row.__mapper__.column_attrs:
        value = getattr(row, attr.key)
        if isinstance(value, enum.Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        out[attr.key] = value
    return out


def _restore_value(column, value):
    if value is None:
        return None
    if isinstance(column.type, sqltypes.DateTime):
        return datetime.fromisoformat(value)
    if isinstance(column.type, sqltypes.Enum) and column.type.enum_class is not None:
        return column.type.enum_class(value)
    return value


class DatabaseStorage:
    def __init__(self):
        self.users = Users()

        self.couple = Singleton(CoupleInfo, "Couple info")
        self.settings = Singleton(Settings, "Settings")
        self.livestream = Singleton(LivestreamInfo, "Livestream info")

        self.schedule = ScheduleCollection(ScheduleEvent, "Schedule event", order_column=ScheduleEvent.order)
        self.photos = Collection(Photo, "Photo", order_column=Photo.order)
        self.messages = ApprovableCollection(GuestMessage, "Guest message")
        self.rsvps = Collection(Rsvp, "RSVP")
        self.wedding_party = Collection(WeddingPartyMember, "Wedding party member",
                                        order_column=WeddingPartyMember.order)
        self.popups = PopupCollection(Popup, "Popup of this type")
        self.music_tracks = Collection(MusicTrack, "Music track",
                                       order_column=MusicTrack.display_order, flag=MusicTrack.is_active)
        self.guest_photos = ApprovableCollection(GuestPhoto, "Guest photo")

    def dump(self) -> dict[str, list[dict[str, Any]]]:
        return {m.__tablename__: [_raw(r) for r in m.query.all()] for m in ALL_MODELS}

    def load(self, tables: dict[str, list[dict[str, Any]]]) -> dict[str, int]:
        """Replace the contents of every table present in `tables`."""
        counts = {}
        for model in ALL_MODELS:
            rows = tables.get(model.__tablename__)
            if rows is None:
                continue
            model.query.delete()
            columns = {a.key: a.columns[0] for a in model.__mapper__.column_attrs}
            for raw in rows:
                fields = {k: _restore_value(columns[k], v) for k, v in raw.items() if k in columns}
                db.session.add(model(**fields))
            counts[model.__tablename__] = len(rows)
        db.session.commit()
        return counts


storage = DatabaseStorage()
