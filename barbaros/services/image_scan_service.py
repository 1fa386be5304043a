import mimetypes
from pathlib import Path

import cv2
import numpy as np

from barbaros.config.settings import MAX_UPLOAD_BYTES
from barbaros.core.errors import InvalidUpload
from barbaros.core.resolver import ScanResult, resolve
from barbaros.utils.logging import setup_logger


def _default_detector():
    """Lazy import so the zbar library is only loaded when scanning for real."""
    from barbaros.core.qr_detector import QRDetector
    return QRDetector()


class ImageScanService:
    """
    Resolves an uploaded picture of a badge to a client identifier.
    Each call is independent; the service holds no per-upload state.
    """

    def __init__(self, detector=None, max_bytes: int = MAX_UPLOAD_BYTES):
        self.logger = setup_logger()
        self._detector = detector
        self.max_bytes = max_bytes

    @property
    def detector(self):
        if self._detector is None:
            self._detector = _default_detector()
        return self._detector

    def validate(self, mime_type: str, size: int):
        """
        Check the upload before any decoding happens.

        Raises:
            InvalidUpload: not an image or larger than max_bytes
        """
        if not mime_type or not mime_type.startswith("image/"):
            raise InvalidUpload("Please select a valid image file")
        if size > self.max_bytes:
            limit_mb = self.max_bytes // (1024 * 1024)
            raise InvalidUpload(f"Image file is too large. Please select a file under {limit_mb}MB")
        if size == 0:
            raise InvalidUpload("Unable to read the selected file. Please try a different image.")

    @staticmethod
    def load_image(data: bytes):
        """
        Decode image bytes into a BGR pixel array.

        Raises:
            InvalidUpload: the bytes are not a readable image
        """
        try:
            image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
        except cv2.error:
            image = None
        if image is None:
            raise InvalidUpload("Invalid image format. Please select a valid image file (JPG, PNG, etc.).")
        return image

    def scan(self, data: bytes, mime_type: str, size: int = None) -> ScanResult:
        """
        Find a badge in an uploaded image.

        Args:
            data: Raw file bytes
            mime_type: MIME type reported for the upload
            size: Reported file size, defaults to len(data)

        Returns:
            ScanResult with the resolved subject id or a typed error
        """
        try:
            self.validate(mime_type, len(data) if size is None else size)
            image = self.load_image(data)
        except InvalidUpload as e:
            self.logger.warning(f"Rejected upload ({mime_type}): {e.message}")
            return ScanResult.failed(e)

        raw_text = self.detector.detect(image)
        result = ScanResult.from_attempt(resolve(raw_text))
        if result.ok:
            self.logger.info(f"Image scan resolved client {result.subject_id} ({result.attempt.outcome.value})")
        else:
            self.logger.info(f"Image scan failed: {result.error.reason}")
        return result

    def scan_file(self, path) -> ScanResult:
        """
        Scan an image stored on disk. Type and size are checked before reading.
        """
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        try:
            self.validate(mime_type, path.stat().st_size)
            data = path.read_bytes()
        except InvalidUpload as e:
            self.logger.warning(f"Rejected file {path}: {e.message}")
            return ScanResult.failed(e)
        except OSError as e:
            self.logger.warning(f"Could not read {path}: {e}")
            return ScanResult.failed(
                InvalidUpload("Unable to read the selected file. Please try a different image.")
            )
        return self.scan(data, mime_type)


def scan_still_image(data: bytes, mime_type: str, size: int = None) -> ScanResult:
    return ImageScanService().scan(data, mime_type, size)
