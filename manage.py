#!/usr/bin/env python3
import json
import pathlib
import sys
from datetime import datetime, timedelta
from getpass import getpass

from app import app, db
from models import utcnow
from schemas import PhotoIn, PopupIn, ScheduleEventIn, WeddingPartyIn, validate
from storage import storage

USAGE = """Usage:
  manage.py init-db
  manage.py create-admin <username>
  manage.py set-password <username>
  manage.py seed
  manage.py backup [path]
  manage.py restore <path>
"""

SEED_ADMIN = ("admin", "admin123")


def init_db() -> int:
    with app.app_context():
        db.create_all()
    print("Database tables created."); return 0


def _prompt_twice(label: str):
    pw1 = getpass(label); pw2 = getpass("Confirm: ")
    if pw1 != pw2:
        print("Passwords do not match."); return None
    if len(pw1) < 6:
        print("Password must be at least 6 characters."); return None
    return pw1


def create_admin(username: str) -> int:
    with app.app_context():
        if storage.users.get_by_username(username):
            print("User already exists."); return 1
        pw = _prompt_twice("Password: ")
        if pw is None:
            return 1
        storage.users.create(username, pw)
        print(f"Created admin '{username}'"); return 0


def set_password(username: str) -> int:
    with app.app_context():
        u = storage.users.get_by_username(username)
        if not u: print("User not found."); return 1
        pw = _prompt_twice("New password: ")
        if pw is None:
            return 1
        storage.users.set_password(u, pw)
        print("Password updated."); return 0


def _seed_rows(repo, rows, schema=None) -> int:
    if repo.list():
        return 0
    for data in rows:
        repo.create(validate(schema, data) if schema else data)
    return len(rows)


def seed() -> int:
    """Fill an empty database with an admin and demo content. Safe to re-run."""
    with app.app_context():
        db.create_all()
        username, password = SEED_ADMIN
        if not storage.users.get_by_username(username):
            storage.users.create(username, password, first_name="Admin")
            print(f"Created admin '{username}' (password: {password}), change it after first login.")

        wedding_day = (utcnow() + timedelta(days=90)).replace(hour=0, minute=0, second=0, microsecond=0)

        if storage.couple.get() is None:
            storage.couple.upsert({
                "bride_name": "Sarah",
                "groom_name": "Michael",
                "wedding_date": wedding_day,
                "our_story": "We met on a rainy afternoon in a small bookshop and never stopped talking.",
            })
        if storage.settings.get() is None:
            storage.settings.upsert({
                "venue_name": "Rosewood Garden Estate",
                "venue_address": "123 Garden Lane",
                "event_start_time": wedding_day.replace(hour=15),
                "event_end_time": wedding_day.replace(hour=23),
                "footer_text": "With love, Sarah & Michael",
                "hashtag": "#SarahAndMichael",
                "background_music": [],
            })
        if storage.livestream.get() is None:
            storage.livestream.upsert({
                "is_active": False,
                "stream_url": "https://www.youtube.com/embed/live",
                "stream_title": "Watch the ceremony live",
                "start_time": wedding_day.replace(hour=15),
            })

        counts = {
            "schedule": _seed_rows(storage.schedule, [
                {"title": "Ceremony", "event_time": wedding_day.replace(hour=15), "icon": "heart", "order": 1},
                {"title": "Cocktail Hour", "event_time": wedding_day.replace(hour=16), "icon": "glass", "order": 2},
                {"title": "Dinner", "event_time": wedding_day.replace(hour=18), "icon": "utensils", "order": 3},
                {"title": "First Dance", "event_time": wedding_day.replace(hour=20), "icon": "music", "order": 4},
            ], ScheduleEventIn),
            "photos": _seed_rows(storage.photos, [
                {"url": "/uploads/images/sample-1.jpg", "caption": "Engagement day", "category": "engagement", "order": 1},
                {"url": "/uploads/images/sample-2.jpg", "caption": "Our first trip", "category": "gallery", "order": 2},
            ], PhotoIn),
            "messages": _seed_rows(storage.messages, [
                {"guest_name": "Emma", "message": "Congratulations to you both!", "approved": True},
                {"guest_name": "James", "message": "Wishing you a lifetime of happiness.", "approved": True},
            ]),
            "wedding_party": _seed_rows(storage.wedding_party, [
                {"name": "Olivia", "role": "Maid of Honor", "order": 1},
                {"name": "Daniel", "role": "Best Man", "order": 2},
            ], WeddingPartyIn),
            "popups": _seed_rows(storage.popups, [
                {"type": "welcome", "image_url": "/uploads/images/welcome.jpg", "title": "Welcome!", "is_active": True},
            ], PopupIn),
        }
        for name, n in counts.items():
            if n:
                print(f"Seeded {n} {name}")
        print("Seed complete."); return 0


def backup(path=None) -> int:
    if path is None:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        path = pathlib.Path("backups") / f"wedding-db-backup-{stamp}.json"
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with app.app_context():
        tables = storage.dump()
    path.write_text(json.dumps({"created_at": utcnow().isoformat(), "tables": tables}, indent=2), encoding="utf-8")
    total = sum(len(rows) for rows in tables.values())
    print(f"Backed up {total} rows to {path}"); return 0


def restore(path) -> int:
    path = pathlib.Path(path)
    if not path.is_file():
        print("Backup file not found."); return 1
    payload = json.loads(path.read_text(encoding="utf-8"))
    with app.app_context():
        db.create_all()
        counts = storage.load(payload.get("tables", {}))
    for name, n in counts.items():
        print(f"Restored {n} {name}")
    return 0


if __name__ == "__main__":
    args = sys.argv[1:]
    if not args:
        print(USAGE); sys.exit(1)
    cmd = args[0]
    if cmd == "init-db" and len(args) == 1:
        sys.exit(init_db())
    if cmd == "create-admin" and len(args) == 2:
        sys.exit(create_admin(args[1]))
    if cmd == "set-password" and len(args) == 2:
        sys.exit(set_password(args[1]))
    if cmd == "seed" and len(args) == 1:
        sys.exit(seed())
    if cmd == "backup" and len(args) in (1, 2):
        sys.exit(backup(args[1] if len(args) == 2 else None))
    if cmd == "restore" and len(args) == 2:
        sys.exit(restore(args[1]))
    print(USAGE); sys.exit(1)
