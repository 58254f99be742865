import logging
from typing import Optional

import cv2
import numpy as np

from visitorpass.core.exceptions import InvalidPassPayload
from visitorpass.services.qr_encoder import decode_payload

logger = logging.getLogger(__name__)

# quiet zone added around the photo; passes are rendered with a thin border
QUIET_ZONE = 40


class QRScanner:
    def __init__(self):
        self.detector = cv2.QRCodeDetector()

    def _detect(self, image) -> Optional[str]:
        text, points, _ = self.detector.detectAndDecode(image)
        if points is None or not text:
            return None
        return text

    def read_text(self, image_bytes: bytes) -> Optional[str]:
        """Return the raw text of the first QR code in the image, if any"""
        nparr = np.frombuffer(image_bytes, np.uint8)
        image = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
        if image is None:
            raise InvalidPassPayload("Invalid image format")

        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        gray = cv2.copyMakeBorder(
            gray, QUIET_ZONE, QUIET_ZONE, QUIET_ZONE, QUIET_ZONE,
            cv2.BORDER_CONSTANT, value=255
        )

        # Otsu binarization first, then plain grayscale
        _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        for candidate in (binary, gray):
            text = self._detect(candidate)
            if text:
                return text

        logger.info("No QR code found in uploaded image")
        return None

    def read_payload(self, image_bytes: bytes) -> dict:
        """Decode a visitor pass payload from an image"""
        text = self.read_text(image_bytes)
        if text is None:
            raise InvalidPassPayload("No QR code detected. Please try again.")
        return decode_payload(text)


qr_scanner = QRScanner()
