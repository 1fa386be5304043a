import base64
import io
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import qrcode
from PIL import Image

from barbaros.config.paths import BADGES_DIR
from barbaros.config.settings import (
    BADGE_TYPE, QR_ERROR_CORRECTION, QR_MARGIN, QR_WIDTH, QR_DARK_COLOR, QR_LIGHT_COLOR,
)
from barbaros.utils.logging import setup_logger

_ERROR_CORRECTION = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}

DATA_URL_PREFIX = "data:image/png;base64,"


@dataclass(frozen=True)
class Badge:
    """
    Payload carried by a client QR badge.
    """
    subject_id: str
    kind: str = BADGE_TYPE
    issued_at: Optional[int] = None


def build_payload(subject_id: str, issued_at: int = None) -> str:
    """
    Serialize the badge payload exactly as printed badges carry it.

    Args:
        subject_id: Client identifier to embed
        issued_at: Milliseconds since epoch, defaults to now

    Returns:
        Compact JSON text with keys id, type, timestamp
    """
    if not isinstance(subject_id, str) or not subject_id:
        raise ValueError("subject_id must be a non-empty string")
    if issued_at is None:
        issued_at = int(time.time() * 1000)
    return json.dumps(
        {"id": subject_id, "type": BADGE_TYPE, "timestamp": issued_at},
        separators=(",", ":"),
    )


def decode_badge(raw_text) -> Optional[Badge]:
    """
    Parse scanned text into a Badge.
    Returns None for anything that is not a Barbaros client badge.
    A non-zero integer id is read as its decimal string.
    """
    try:
        data = json.loads(raw_text)
    except (TypeError, ValueError, RecursionError):
        return None

    if not isinstance(data, dict) or data.get("type") != BADGE_TYPE:
        return None

    subject_id = data.get("id")
    if isinstance(subject_id, int) and not isinstance(subject_id, bool) and subject_id:
        subject_id = str(subject_id)
    if not isinstance(subject_id, str) or not subject_id:
        return None

    issued_at = data.get("timestamp")
    if isinstance(issued_at, bool) or not isinstance(issued_at, int):
        issued_at = None
    return Badge(subject_id=subject_id, issued_at=issued_at)


def data_url_to_bytes(data_url: str) -> bytes:
    """
    Convert a PNG data URL back to raw bytes (for downloads).
    """
    if not data_url.startswith(DATA_URL_PREFIX):
        raise ValueError("Not a PNG data URL")
    return base64.b64decode(data_url[len(DATA_URL_PREFIX):])


class BadgeCodec:
    """
    Renders client badges as QR images and stores them on disk.
    """

    def __init__(self, badges_dir: Path = None):
        self.logger = setup_logger()
        self.badges_dir = Path(badges_dir) if badges_dir else BADGES_DIR
        self.badges_dir.mkdir(parents=True, exist_ok=True)

    def render_png(self, subject_id: str, width: int = QR_WIDTH, margin: int = QR_MARGIN,
                   dark: str = QR_DARK_COLOR, light: str = QR_LIGHT_COLOR,
                   error_correction: str = QR_ERROR_CORRECTION, issued_at: int = None) -> bytes:
        """
        Render the badge for subject_id as PNG bytes.

        Args:
            subject_id: Client identifier to embed
            width: Output size in pixels (the image is square)
            margin: Quiet zone in modules
            dark: Module colour
            light: Background colour
            error_correction: One of L, M, Q, H
            issued_at: Optional fixed timestamp in milliseconds

        Returns:
            PNG image bytes
        """
        payload = build_payload(subject_id, issued_at)
        try:
            qr = qrcode.QRCode(
                error_correction=_ERROR_CORRECTION[error_correction.upper()],
                box_size=10,
                border=margin,
            )
            qr.add_data(payload)
            qr.make(fit=True)
            img = qr.make_image(fill_color=dark, back_color=light)

            raw = io.BytesIO()
            img.save(raw)
            raw.seek(0)
            rendered = Image.open(raw).convert("RGB").resize((width, width), Image.NEAREST)

            out = io.BytesIO()
            rendered.save(out, format="PNG")
            return out.getvalue()
        except Exception as e:
            self.logger.error(f"Failed to generate QR code for {subject_id}: {e}")
            raise RuntimeError("Failed to generate QR code") from e

    def encode(self, subject_id: str, **options) -> str:
        """
        Render the badge for subject_id as a PNG data URL.
        """
        png = self.render_png(subject_id, **options)
        return DATA_URL_PREFIX + base64.b64encode(png).decode("ascii")

    def decode(self, raw_text) -> Optional[Badge]:
        badge = decode_badge(raw_text)
        if badge is None:
            self.logger.debug(f"Not a Barbaros badge payload: {raw_text!r}")
        return badge

    def badge_path(self, subject_id: str) -> Path:
        return self.badges_dir / f"{subject_id}.png"

    def save(self, subject_id: str, path: Path = None, **options) -> Path:
        """
        Render the badge and write it to disk.

        Returns:
            Path of the written PNG
        """
        target = Path(path) if path else self.badge_path(subject_id)
        target.write_bytes(self.render_png(subject_id, **options))
        self.logger.info(f"Badge generated and saved: {target}")
        return target

    def badge_exists(self, subject_id: str) -> bool:
        return self.badge_path(subject_id).exists()

    def delete_badge(self, subject_id: str) -> bool:
        """
        Delete a stored badge image.

        Returns:
            True if a file was removed
        """
        path = self.badge_path(subject_id)
        if not path.exists():
            return False
        try:
            path.unlink()
            self.logger.info(f"Deleted badge: {path}")
            return True
        except OSError as e:
            self.logger.warning(f"Failed to delete badge {path}: {e}")
            return False


def encode_badge(subject_id: str, **options) -> str:
    """
    Render a client badge as a PNG data URL using the default badge directory.
    """
    return BadgeCodec().encode(subject_id, **options)
