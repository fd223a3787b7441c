import json

import manage
from models import CoupleInfo, GuestMessage, Popup, ScheduleEvent, User, db
from storage import storage


def test_seed_is_idempotent(app, client):
    assert manage.seed() == 0
    counts = (ScheduleEvent.query.count(), Popup.query.count(), GuestMessage.query.count())
    assert manage.seed() == 0
    assert (ScheduleEvent.query.count(), Popup.query.count(), GuestMessage.query.count()) == counts

    assert User.query.filter_by(username="admin").count() == 1
    assert CoupleInfo.query.count() == 1
    resp = client.post("/api/login", json={"username": "admin", "password": "admin123"})
    assert resp.status_code == 200
    assert len(client.get("/api/messages?approved=true").get_json()) == 2


def test_backup_and_restore(app, tmp_path):
    manage.seed()
    path = tmp_path / "backup.json"
    assert manage.backup(str(path)) == 0
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert len(payload["tables"]["schedule_events"]) == 4

    db.session.remove()
    db.drop_all()
    db.create_all()
    assert storage.couple.get() is None

    assert manage.restore(str(path)) == 0
    assert storage.couple.get().bride_name == "Sarah"
    assert ScheduleEvent.query.count() == 4
    assert storage.popups.get_by_type("welcome").title == "Welcome!"


def test_restore_missing_file(app, tmp_path):
    assert manage.restore(str(tmp_path / "nope.json")) == 1
