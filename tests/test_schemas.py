from datetime import datetime

import pytest
from pydantic import ValidationError

from models import PhotoCategory, ScheduleIcon, StreamPlatform
from schemas import (
    ApprovalIn, ChangePasswordIn, CoupleInfoIn, CoupleInfoPatch, GuestMessageIn,
    LivestreamIn, PhotoIn, ProfileIn, RsvpIn, ScheduleEventIn, ScheduleEventPatch,
    SettingsIn, validate,
)


def test_date_only_string_becomes_midnight():
    data = validate(CoupleInfoIn, {"brideName": "A", "groomName": "B", "weddingDate": "2030-06-01"})
    assert data["wedding_date"] == datetime(2030, 6, 1, 0, 0)


def test_aware_datetime_is_stored_as_naive_utc():
    data = validate(ScheduleEventIn, {"title": "Vows", "eventTime": "2030-06-01T17:00:00+02:00"})
    assert data["event_time"] == datetime(2030, 6, 1, 15, 0)


def test_blank_optional_date_means_null():
    data = validate(LivestreamIn, {"streamUrl": "https://example.com/live", "startTime": ""})
    assert data["start_time"] is None


def test_garbage_date_is_rejected():
    with pytest.raises(ValidationError):
        validate(CoupleInfoIn, {"brideName": "A", "groomName": "B", "weddingDate": "next june"})


def test_required_fields_are_reported_by_camel_case_name():
    with pytest.raises(ValidationError) as exc:
        validate(CoupleInfoIn, {"brideName": "A"})
    missing = {err["loc"][0] for err in exc.value.errors()}
    assert missing == {"groomName", "weddingDate"}


def test_blank_required_text_is_rejected():
    with pytest.raises(ValidationError):
        validate(ScheduleEventIn, {"title": "   ", "eventTime": "2030-06-01"})


def test_enums_are_case_insensitive_and_closed():
    data = validate(ScheduleEventIn, {"title": "Dinner", "eventTime": "2030-06-01", "icon": "Utensils"})
    assert data["icon"] is ScheduleIcon.utensils

    assert validate(PhotoIn, {"url": "/p.jpg", "category": "PRE-WEDDING"})["category"] is PhotoCategory.pre_wedding
    assert validate(LivestreamIn, {"streamUrl": "u", "platform": "zoom"})["platform"] is StreamPlatform.zoom

    with pytest.raises(ValidationError):
        validate(ScheduleEventIn, {"title": "Dinner", "eventTime": "2030-06-01", "icon": "rocket"})


def test_blank_optional_enum_means_null():
    data = validate(ScheduleEventIn, {"title": "Dinner", "eventTime": "2030-06-01", "icon": ""})
    assert data["icon"] is None


def test_create_omits_defaults_the_database_fills():
    data = validate(PhotoIn, {"url": "/p.jpg"})
    assert data == {"url": "/p.jpg"}


def test_server_managed_and_unknown_keys_are_dropped():
    data = validate(PhotoIn, {"url": "/p.jpg", "id": "x", "createdAt": "2020-01-01", "likes": 4})
    assert data == {"url": "/p.jpg"}


def test_patch_only_forwards_supplied_fields():
    assert validate(ScheduleEventPatch, {"location": "Hall"}) == {"location": "Hall"}
    assert validate(CoupleInfoPatch, {"ourStory": None}) == {"our_story": None}


def test_patch_rejects_null_for_required_column():
    with pytest.raises(ValidationError):
        validate(ScheduleEventPatch, {"title": None})


def test_snake_case_keys_are_accepted():
    data = validate(ScheduleEventIn, {"title": "Toast", "event_time": "2030-06-01T20:00:00"})
    assert data["event_time"] == datetime(2030, 6, 1, 20)


def test_guest_submissions_cannot_self_approve():
    data = validate(GuestMessageIn, {"guestName": "Eve", "message": "Hi", "approved": True})
    assert "approved" not in data


def test_rsvp_checks_email_and_guest_count():
    ok = validate(RsvpIn, {"guestName": "Fay", "email": "fay@example.com", "attending": True, "guestCount": 2})
    assert ok["guest_count"] == 2

    with pytest.raises(ValidationError):
        validate(RsvpIn, {"guestName": "Fay", "email": "not-an-email", "attending": True})
    with pytest.raises(ValidationError):
        validate(RsvpIn, {"guestName": "Fay", "email": "fay@example.com", "attending": True, "guestCount": 0})


def test_background_music_entries_default_their_name():
    data = validate(SettingsIn, {"backgroundMusic": [
        {"url": "/uploads/audio/first-dance.mp3"},
        {"url": "https://example.com/song.mp3", "name": "Our Song"},
    ]})
    assert data["background_music"] == [
        {"url": "/uploads/audio/first-dance.mp3", "name": "first-dance.mp3"},
        {"url": "https://example.com/song.mp3", "name": "Our Song"},
    ]


def test_approval_requires_a_real_boolean():
    assert ApprovalIn.model_validate({"approved": False}).approved is False
    with pytest.raises(ValidationError):
        ApprovalIn.model_validate({"approved": "yes"})


def test_new_password_minimum_length():
    with pytest.raises(ValidationError):
        ChangePasswordIn.model_validate({"currentPassword": "old", "newPassword": "abc"})


def test_profile_blank_email_means_none():
    assert ProfileIn.model_validate({"username": "host", "email": ""}).email is None


def test_column_limits_are_enforced():
    with pytest.raises(ValidationError):
        validate(PhotoIn, {"url": "/p.jpg", "order": 2**31})
    with pytest.raises(ValidationError):
        validate(RsvpIn, {"guestName": "A" * 121, "email": "a@example.com", "attending": True})
    with pytest.raises(ValidationError):
        validate(RsvpIn, {"guestName": "A", "email": "a@example.com", "attending": True, "guestCount": 2**31})
    with pytest.raises(ValidationError):
        validate(ScheduleEventPatch, {"location": "x" * 301})

    assert validate(PhotoIn, {"url": "/p.jpg", "order": -5})["order"] == -5
    assert validate(RsvpIn, {"guestName": "A" * 120, "email": "a@example.com", "attending": True})
