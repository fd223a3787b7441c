from flask import (
    Flask, request, redirect, session, abort, jsonify, send_from_directory, g
)
from flask_cors import CORS
from pydantic import ValidationError
from datetime import timedelta
from functools import wraps
from werkzeug.security import check_password_hash
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
import logging, os, pathlib, time

from models import db
from schemas import (
    ApprovalIn, ChangePasswordIn, CoupleInfoIn, CoupleInfoPatch, GuestMessageIn,
    GuestPhotoIn, LivestreamIn, LivestreamPatch, LoginIn, MusicTrackIn,
    MusicTrackPatch, PhotoIn, PhotoPatch, PopupIn, PopupPatch, ProfileIn, RsvpIn,
    RsvpPatch, ScheduleEventIn, ScheduleEventPatch, SettingsIn, SettingsPatch,
    WeddingPartyIn, WeddingPartyPatch, validate,
)
from storage import DuplicateError, storage
from uploads import UploadError, save_upload

# ---------------- App & Config ----------------
app = Flask(__name__)

# Base folder of this project (portable across OSes)
BASE_DIR = pathlib.Path(__file__).resolve().parent

def _local_sqlite_uri(filename: str) -> str:
    p = (BASE_DIR / filename).resolve()
    return "sqlite:///" + str(p).replace("\\", "/")

def _database_uri() -> str:
    uri = (
        os.environ.get("DATABASE_URL")
        or os.environ.get("SQLALCHEMY_DATABASE_URI")
        or _local_sqlite_uri("wedding.db")
    )
    # hosted Postgres often hands out the old scheme SQLAlchemy no longer accepts
    if uri.startswith("postgres://"):
        uri = "postgresql://" + uri[len("postgres://"):]
    return uri

app.config["SQLALCHEMY_DATABASE_URI"] = _database_uri()
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

# Sessions / cookies
app.config["SECRET_KEY"] = (
    os.environ.get("SECRET_KEY") or os.environ.get("SESSION_SECRET") or "dev-change-me"
)
app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=int(os.environ.get("SESSION_TTL_DAYS", "7")))
app.config["SESSION_COOKIE_HTTPONLY"] = True
app.config["SESSION_COOKIE_SECURE"] = not bool(os.environ.get("COOKIE_INSECURE"))
app.config["SESSION_COOKIE_SAMESITE"] = os.environ.get("SESSION_COOKIE_SAMESITE", "Lax")

app.config["ALLOWED_ORIGINS"] = [
    o.strip() for o in os.environ.get("ALLOWED_ORIGINS", "http://localhost:5000").split(",") if o.strip()
]

# Uploads directory (env > ./uploads)
app.config["UPLOAD_ROOT"] = str(pathlib.Path(
    os.environ.get("UPLOAD_ROOT") or (BASE_DIR / "uploads")
).resolve())
app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("MAX_CONTENT_LENGTH", 50 * 1024 * 1024))  # 50 MB

# Re-encoded upload size
app.config["IMAGE_MAX_PX"] = int(os.environ.get("IMAGE_MAX_PX", "1600"))
app.config["IMAGE_QUALITY"] = int(os.environ.get("IMAGE_QUALITY", "85"))

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
app.logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

db.init_app(app)
CORS(app, origins=app.config["ALLOWED_ORIGINS"], supports_credentials=True)

# ---------------- One-time setup ----------------
os.makedirs(app.config["UPLOAD_ROOT"], exist_ok=True)
with app.app_context():
    db.create_all()

# ---------------- Request hooks ----------------
@app.before_request
def start_timer():
    g.started = time.perf_counter()

@app.after_request
def log_api_request(resp):
    if request.path.startswith("/api"):
        ms = (time.perf_counter() - g.get("started", time.perf_counter())) * 1000
        line = f"{request.method} {request.path} {resp.status_code} in {ms:.0f}ms"
        if len(line) > 80:
            line = line[:79] + "…"
        app.logger.info(line)
    return resp

# ---------------- Error handlers ----------------
@app.errorhandler(ValidationError)
def handle_validation(e):
    fields, parts = [], []
    for err in e.errors():
        field = ".".join(str(p) for p in err["loc"]) or "body"
        fields.append(field)
        parts.append(f"{field}: {err['msg']}")
    return jsonify(message="; ".join(parts), fields=fields), 400

@app.errorhandler(DuplicateError)
def handle_duplicate(e):
    return jsonify(message=str(e)), 409

@app.errorhandler(UploadError)
def handle_upload_error(e):
    return jsonify(message=str(e)), 400

@app.errorhandler(RequestEntityTooLarge)
def handle_413(e):
    return jsonify(message="That upload was too large."), 413

@app.errorhandler(HTTPException)
def handle_http(e):
    return jsonify(message=e.description), e.code

@app.errorhandler(Exception)
def handle_unexpected(e):
    db.session.rollback()
    app.logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify(message="Internal Server Error"), 500

# ---------------- Auth/perm helpers ----------------
def current_user():
    return storage.users.get(session.get("user_id"))

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if current_user() is None:
            abort(401, description="Unauthorized")
        return fn(*args, **kwargs)
    return wrapper

def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description="Request body must be a JSON object")
    return data

def flag_arg(name: str) -> bool:
    return request.args.get(name) == "true"

def found(row, label: str):
    if row is None:
        abort(404, description=f"{label} not found")
    return jsonify(row.to_dict())

def rows(items):
    return jsonify([r.to_dict() for r in items])

def deleted(label: str):
    return jsonify(message=f"{label} deleted")

def save_singleton(repo, create_schema, patch_schema):
    # the first save must be complete, later ones merge
    schema = create_schema if repo.get() is None else patch_schema
    return jsonify(repo.upsert(validate(schema, json_body())).to_dict())

# ---------------- Auth routes ----------------
@app.post("/api/login")
def login():
    creds = LoginIn.model_validate(json_body())
    user = storage.users.get_by_username(creds.username)
    if not user or not check_password_hash(user.password_hash, creds.password):
        app.logger.warning("Failed login for %r", creds.username)
        abort(401, description="Invalid username or password")
    session.clear()
    session.permanent = True
    session["user_id"] = user.id
    app.logger.info("User %s logged in", user.username)
    return jsonify(message="Login successful", user=user.to_dict())

@app.post("/api/logout")
def logout():
    app.logger.info("User %s logged out", session.get("user_id"))
    session.clear()
    return jsonify(message="Logged out successfully")

@app.get("/api/logout")
def logout_redirect():
    session.clear()
    return redirect("/")

@app.get("/api/auth/user")
@app.get("/api/user")
@login_required
def me():
    return jsonify(current_user().to_dict())

@app.post("/api/change-password")
@login_required
def change_password():
    body = ChangePasswordIn.model_validate(json_body())
    user = current_user()
    if not check_password_hash(user.password_hash, body.current_password):
        abort(400, description="Current password is incorrect")
    storage.users.set_password(user, body.new_password)
    app.logger.info("Password changed for %s", user.username)
    return jsonify(message="Password updated")

@app.post("/api/update-profile")
@login_required
def update_profile():
    body = ProfileIn.model_validate(json_body())
    user = storage.users.update_profile(current_user(), body.username, body.email)
    return jsonify(user.to_dict())

# ----- Couple info -----
@app.get("/api/couple")
def couple_get():
    info = storage.couple.get()
    return jsonify(info.to_dict() if info else None)

@app.post("/api/couple")
@login_required
def couple_upsert():
    return save_singleton(storage.couple, CoupleInfoIn, CoupleInfoPatch)

# ----- Settings -----
@app.get("/api/settings")
def settings_get():
    s = storage.settings.get()
    return jsonify(s.to_dict() if s else None)

@app.post("/api/settings")
@login_required
def settings_upsert():
    return save_singleton(storage.settings, SettingsIn, SettingsPatch)

# ----- Livestream -----
@app.get("/api/livestream")
def livestream_get():
    info = storage.livestream.get()
    return jsonify(info.to_dict() if info else None)

@app.post("/api/livestream")
@login_required
def livestream_upsert():
    return save_singleton(storage.livestream, LivestreamIn, LivestreamPatch)

# ----- Schedule -----
@app.get("/api/schedule")
def schedule_list():
    when = (request.args.get("when") or "").lower() or None
    if when not in (None, "all", "upcoming", "past"):
        abort(400, description="when must be one of: all, upcoming, past")
    return rows(storage.schedule.list(when=when))

@app.get("/api/schedule/<event_id>")
def schedule_get(event_id):
    return found(storage.schedule.get(event_id), "Schedule event")

@app.post("/api/schedule")
@login_required
def schedule_create():
    event = storage.schedule.create(validate(ScheduleEventIn, json_body()))
    return jsonify(event.to_dict())

@app.patch("/api/schedule/<event_id>")
@login_required
def schedule_update(event_id):
    data = validate(ScheduleEventPatch, json_body())
    return found(storage.schedule.update(event_id, data), "Schedule event")

@app.delete("/api/schedule/<event_id>")
@login_required
def schedule_delete(event_id):
    storage.schedule.delete(event_id)
    return deleted("Schedule event")

# ----- Photos -----
@app.get("/api/photos")
def photos_list():
    return rows(storage.photos.list())

@app.get("/api/photos/<photo_id>")
def photo_get(photo_id):
    return found(storage.photos.get(photo_id), "Photo")

@app.post("/api/photos")
@login_required
def photo_create():
    photo = storage.photos.create(validate(PhotoIn, json_body()))
    return jsonify(photo.to_dict())

@app.patch("/api/photos/<photo_id>")
@login_required
def photo_update(photo_id):
    data = validate(PhotoPatch, json_body())
    return found(storage.photos.update(photo_id, data), "Photo")

@app.delete("/api/photos/<photo_id>")
@login_required
def photo_delete(photo_id):
    storage.photos.delete(photo_id)
    return deleted("Photo")

# ----- Guest messages -----
@app.get("/api/messages")
def messages_list():
    return rows(storage.messages.list(only=flag_arg("approved")))

@app.get("/api/messages/<message_id>")
@login_required
def message_get(message_id):
    return found(storage.messages.get(message_id), "Guest message")

@app.post("/api/messages")
def message_create():
    # open to guests; approval is never taken from the body
    msg = storage.messages.create(validate(GuestMessageIn, json_body()))
    return jsonify(msg.to_dict())

@app.patch("/api/messages/<message_id>/approve")
@login_required
def message_approve(message_id):
    body = ApprovalIn.model_validate(json_body())
    return found(storage.messages.approve(message_id, body.approved), "Guest message")

@app.delete("/api/messages/<message_id>")
@login_required
def message_delete(message_id):
    storage.messages.delete(message_id)
    return deleted("Guest message")

# ----- RSVPs -----
@app.get("/api/rsvps")
@login_required
def rsvps_list():
    return rows(storage.rsvps.list())

@app.get("/api/rsvps/<rsvp_id>")
@login_required
def rsvp_get(rsvp_id):
    return found(storage.rsvps.get(rsvp_id), "RSVP")

@app.post("/api/rsvps")
def rsvp_create():
    rsvp = storage.rsvps.create(validate(RsvpIn, json_body()))
    app.logger.info("RSVP from %s (attending=%s)", rsvp.guest_name, rsvp.attending)
    return jsonify(rsvp.to_dict())

@app.patch("/api/rsvps/<rsvp_id>")
@login_required
def rsvp_update(rsvp_id):
    data = validate(RsvpPatch, json_body())
    return found(storage.rsvps.update(rsvp_id, data), "RSVP")

@app.delete("/api/rsvps/<rsvp_id>")
@login_required
def rsvp_delete(rsvp_id):
    storage.rsvps.delete(rsvp_id)
    return deleted("RSVP")

# ----- Wedding party -----
@app.get("/api/wedding-party")
def party_list():
    return rows(storage.wedding_party.list())

@app.get("/api/wedding-party/<member_id>")
def party_get(member_id):
    return found(storage.wedding_party.get(member_id), "Wedding party member")

@app.post("/api/wedding-party")
@login_required
def party_create():
    member = storage.wedding_party.create(validate(WeddingPartyIn, json_body()))
    return jsonify(member.to_dict())

@app.patch("/api/wedding-party/<member_id>")
@login_required
def party_update(member_id):
    data = validate(WeddingPartyPatch, json_body())
    return found(storage.wedding_party.update(member_id, data), "Wedding party member")

@app.delete("/api/wedding-party/<member_id>")
@login_required
def party_delete(member_id):
    storage.wedding_party.delete(member_id)
    return deleted("Wedding party member")

# ----- Popups -----
@app.get("/api/popups")
def popups_list():
    return rows(storage.popups.list())

@app.get("/api/popups/<popup_type>")
def popup_by_type(popup_type):
    popup = storage.popups.get_by_type(popup_type)
    return jsonify(popup.to_dict() if popup else None)

@app.post("/api/popups")
@login_required
def popup_create():
    popup = storage.popups.create(validate(PopupIn, json_body()))
    return jsonify(popup.to_dict())

@app.patch("/api/popups/<popup_id>")
@login_required
def popup_update(popup_id):
    data = validate(PopupPatch, json_body())
    return found(storage.popups.update(popup_id, data), "Popup")

@app.delete("/api/popups/<popup_id>")
@login_required
def popup_delete(popup_id):
    storage.popups.delete(popup_id)
    return deleted("Popup")

# ----- Music tracks -----
@app.get("/api/music-tracks")
def tracks_list():
    return rows(storage.music_tracks.list(only=flag_arg("activeOnly")))

@app.get("/api/music-tracks/<track_id>")
def track_get(track_id):
    return found(storage.music_tracks.get(track_id), "Music track")

@app.post("/api/music-tracks")
@login_required
def track_create():
    track = storage.music_tracks.create(validate(MusicTrackIn, json_body()))
    return jsonify(track.to_dict())

@app.patch("/api/music-tracks/<track_id>")
@login_required
def track_update(track_id):
    data = validate(MusicTrackPatch, json_body())
    return found(storage.music_tracks.update(track_id, data), "Music track")

@app.delete("/api/music-tracks/<track_id>")
@login_required
def track_delete(track_id):
    storage.music_tracks.delete(track_id)
    return deleted("Music track")

# ----- Guest photos -----
@app.get("/api/guest-photos")
def guest_photos_list():
    return rows(storage.guest_photos.list(only=flag_arg("approved")))

@app.get("/api/guest-photos/<photo_id>")
def guest_photo_get(photo_id):
    return found(storage.guest_photos.get(photo_id), "Guest photo")

@app.post("/api/guest-photos")
def guest_photo_create():
    photo = storage.guest_photos.create(validate(GuestPhotoIn, json_body()))
    return jsonify(photo.to_dict())

@app.patch("/api/guest-photos/<photo_id>/approve")
@login_required
def guest_photo_approve(photo_id):
    body = ApprovalIn.model_validate(json_body())
    return found(storage.guest_photos.approve(photo_id, body.approved), "Guest photo")

@app.delete("/api/guest-photos/<photo_id>")
@login_required
def guest_photo_delete(photo_id):
    storage.guest_photos.delete(photo_id)
    return deleted("Guest photo")

# ----- Uploads -----
@app.post("/api/upload")
def upload():
    rel = save_upload(
        request.files.get("file"),
        app.config["UPLOAD_ROOT"],
        max_px=app.config["IMAGE_MAX_PX"],
        quality=app.config["IMAGE_QUALITY"],
    )
    return jsonify(url=f"/uploads/{rel}")

@app.get("/uploads/<path:subpath>")
def serve_upload(subpath):
    resp = send_from_directory(app.config["UPLOAD_ROOT"], subpath)
    resp.headers["Cache-Control"] = "public, max-age=2592000, immutable"
    return resp


@app.get("/healthz")
def healthz():
    return {"ok": True}, 200

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", "5000")), debug=False)
