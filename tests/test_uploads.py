import io
import pathlib

import pytest
from PIL import Image

from uploads import UploadError, looks_like_image, save_upload


def png_bytes(size=(40, 30), mode="RGBA"):
    buf = io.BytesIO()
    Image.new(mode, size, (200, 100, 50, 255) if mode == "RGBA" else (200, 100, 50)).save(buf, "PNG")
    return buf.getvalue()


def post_file(client, payload, name):
    return client.post(
        "/api/upload",
        data={"file": (io.BytesIO(payload), name)},
        content_type="multipart/form-data",
    )


def test_magic_bytes_must_match_an_image_extension():
    assert looks_like_image(png_bytes()[:16], ".png")
    assert not looks_like_image(png_bytes()[:16], ".txt")
    assert not looks_like_image(b"hello world12345", ".jpg")


def test_image_upload_is_reencoded_as_jpeg(client, app):
    resp = post_file(client, png_bytes(), "Our Photo.png")
    assert resp.status_code == 200
    url = resp.get_json()["url"]
    assert url.startswith("/uploads/images/") and url.endswith(".jpg")

    stored = pathlib.Path(app.config["UPLOAD_ROOT"]) / url[len("/uploads/"):]
    with Image.open(stored) as im:
        assert im.format == "JPEG"
        assert im.mode == "RGB"

    served = client.get(url)
    assert served.status_code == 200
    assert served.headers["Cache-Control"].startswith("public")


def test_large_images_are_downscaled(client, app, monkeypatch):
    monkeypatch.setitem(app.config, "IMAGE_MAX_PX", 100)
    url = post_file(client, png_bytes(size=(400, 200), mode="RGB"), "wide.png").get_json()["url"]
    with Image.open(pathlib.Path(app.config["UPLOAD_ROOT"]) / url[len("/uploads/"):]) as im:
        assert max(im.size) == 100


def test_audio_is_stored_as_is(client, app):
    resp = post_file(client, b"ID3fake-mp3-data", "first dance.mp3")
    assert resp.status_code == 200
    url = resp.get_json()["url"]
    assert url.startswith("/uploads/audio/") and url.endswith(".mp3")
    stored = pathlib.Path(app.config["UPLOAD_ROOT"]) / url[len("/uploads/"):]
    assert stored.read_bytes() == b"ID3fake-mp3-data"


def test_non_media_upload_is_rejected(client):
    resp = post_file(client, b"just some text", "notes.txt")
    assert resp.status_code == 400
    assert resp.get_json() == {"message": "File must be an image or audio file"}


def test_fake_image_is_rejected(client):
    assert post_file(client, b"not really a jpeg", "photo.jpg").status_code == 400


def test_missing_file_is_rejected(client):
    resp = client.post("/api/upload", data={}, content_type="multipart/form-data")
    assert resp.status_code == 400
    assert resp.get_json() == {"message": "No file was uploaded"}


def test_save_upload_size_limit(tmp_path, monkeypatch):
    import uploads
    from werkzeug.datastructures import FileStorage

    monkeypatch.setattr(uploads, "MAX_AUDIO_BYTES", 4)
    with pytest.raises(UploadError):
        save_upload(FileStorage(io.BytesIO(b"123456"), filename="song.mp3"), tmp_path)
