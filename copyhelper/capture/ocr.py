"""
OCR over capture regions.

The OCR engine itself is a collaborator behind the OcrEngine protocol;
TesseractOcr is the production implementation via pytesseract.
"""

import threading
from typing import Protocol

import cv2
import numpy as np
import pytesseract
from PIL import Image

from copyhelper.config import get
from copyhelper.errors import InferenceError
from copyhelper.imaging import ImageInput, to_bgr, to_gray, to_pil
from copyhelper.logging_config import get_logger
from copyhelper.text_cleaning import normalize_whitespace, sanitize_text

logger = get_logger(__name__)

OCR_LANGUAGE = get("ocr", "language")
OCR_PSM = get("ocr", "psm")
OCR_MIN_HEIGHT = get("pipeline", "ocr_min_height")
OCR_UPSCALE_FACTOR = get("pipeline", "ocr_upscale_factor")
OCR_BLOCK_SIZE = get("pipeline", "ocr_block_size")
OCR_C = get("pipeline", "ocr_c")


class OcrEngine(Protocol):
    """Anything that turns an image into text.

    Implementations raise InferenceError on failure and return "" when an
    image simply contains no text.
    """

    def read_text(self, image: Image.Image) -> str:
        ...


def preprocess_for_ocr(image: ImageInput) -> Image.Image:
    """Binarize a crop for OCR.

    Grayscale, upscale short crops, adaptive Gaussian threshold, then a
    small opening and dilation to clean up speckle.
    """
    gray = to_gray(to_bgr(image))
    if gray.shape[0] < OCR_MIN_HEIGHT:
        gray = cv2.resize(
            gray, None, fx=OCR_UPSCALE_FACTOR, fy=OCR_UPSCALE_FACTOR,
            interpolation=cv2.INTER_CUBIC,
        )

    binary = cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY,
        OCR_BLOCK_SIZE, OCR_C,
    )
    kernel = np.ones((2, 2), np.uint8)
    binary = cv2.morphologyEx(binary, cv2.MORPH_OPEN, kernel)
    binary = cv2.dilate(binary, kernel, iterations=1)
    return to_pil(binary)


class TesseractOcr:
    """Tesseract via pytesseract. Calls are serialized on one lock."""

    def __init__(self, language: str = OCR_LANGUAGE, psm: int = OCR_PSM):
        self.language = language
        self.psm = psm
        self._lock = threading.Lock()

    @property
    def config(self) -> str:
        return f"--psm {self.psm} -c preserve_interword_spaces=1"

    def read_text(self, image: Image.Image) -> str:
        with self._lock:
            try:
                raw = pytesseract.image_to_string(image, lang=self.language, config=self.config)
            except (pytesseract.TesseractError, OSError, RuntimeError) as e:
                raise InferenceError(f"tesseract failed: {e}") from e
        return normalize_whitespace(sanitize_text(raw))
