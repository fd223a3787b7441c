"""Local storage for images and audio posted to /api/upload."""
import io
import pathlib
import uuid

from PIL import Image, ImageOps, UnidentifiedImageError
from werkzeug.utils import secure_filename

IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
AUDIO_EXTS = {".mp3", ".wav", ".ogg", ".m4a", ".aac"}

MAX_IMAGE_BYTES = 5 * 1024 * 1024
MAX_AUDIO_BYTES = 10 * 1024 * 1024


class UploadError(ValueError):
    """The posted file is missing, too large, or not an accepted type."""


def looks_like_image(first_bytes: bytes, ext: str) -> bool:
    if ext not in IMAGE_EXTS:
        return False
    b = first_bytes
    if b[:3] == b"\xFF\xD8\xFF": return True   # JPEG
    if b[:8] == b"\x89PNG\r\n\x1a\n": return True
    if b[:6] in (b"GIF87a", b"GIF89a"): return True
    if len(b) >= 12 and b[:4] == b"RIFF" and b[8:12] == b"WEBP": return True
    return False


def _write_jpeg(raw: bytes, dest: pathlib.Path, max_px: int, quality: int):
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        with Image.open(io.BytesIO(raw)) as im:
            im = ImageOps.exif_transpose(im)
            im.thumbnail((max_px, max_px), Image.LANCZOS)
            if im.mode == "RGBA":
                bg = Image.new("RGB", im.size, (255, 255, 255))
                bg.paste(im, mask=im.split()[3])
                im = bg
            elif im.mode != "RGB":
                im = im.convert("RGB")
            im.save(dest, "JPEG", quality=quality, optimize=True, progressive=True)
    except (UnidentifiedImageError, OSError) as e:
        raise UploadError("Could not read the image") from e


def save_upload(file_storage, root, max_px: int = 1600, quality: int = 85) -> str:
    """
    Store an uploaded file under `root` and return its path relative to it,
    e.g. 'images/3f2a….jpg' or 'audio/9b1c….mp3'.
    """
    if not file_storage or not file_storage.filename:
        raise UploadError("No file was uploaded")

    original = secure_filename(file_storage.filename)
    ext = pathlib.Path(original).suffix.lower()
    raw = file_storage.stream.read()
    root = pathlib.Path(root)

    if looks_like_image(raw[:16], ext):
        if len(raw) > MAX_IMAGE_BYTES:
            raise UploadError("Images must be smaller than 5MB")
        rel = pathlib.Path("images") / f"{uuid.uuid4().hex}.jpg"
        _write_jpeg(raw, root / rel, max_px, quality)
        return rel.as_posix()

    if ext in AUDIO_EXTS:
        if len(raw) > MAX_AUDIO_BYTES:
            raise UploadError("Audio files must be smaller than 10MB")
        rel = pathlib.Path("audio") / f"{uuid.uuid4().hex}{ext}"
        dest = root / rel
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(raw)
        return rel.as_posix()

    raise UploadError("File must be an image or audio file")
