import cv2
from pyzbar.pyzbar import ZBarSymbol, decode
from barbaros.utils.logging import setup_logger


class QRDetector:
    """
    Finds a QR symbol in an image and extracts its text payload.
    """

    def __init__(self):
        self.logger = setup_logger()
        self._cv_detector = cv2.QRCodeDetector()

    def detect(self, frame):
        """
        Scan QR code from frame (BGR, BGRA or greyscale array).
        Returns decoded text or None.
        """
        if frame is None:
            return None
        try:
            # Convert to grayscale for better QR detection
            gray = self._to_gray(frame)
            decoded_objects = decode(gray, symbols=[ZBarSymbol.QRCODE])

            for obj in decoded_objects:
                qr_data = obj.data.decode("utf-8", errors="replace")
                self.logger.info(f"QR detected: {qr_data}")
                return qr_data

            # Second opinion from OpenCV's own decoder
            qr_data, points, _ = self._cv_detector.detectAndDecode(gray)
            if qr_data:
                self.logger.info(f"QR detected (OpenCV): {qr_data}")
                return qr_data

            return None
        except Exception as e:
            self.logger.warning(f"QR scan error: {e}")
            return None

    @staticmethod
    def _to_gray(frame):
        if frame.ndim == 2:
            return frame
        if frame.shape[2] == 4:
            return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
        return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
