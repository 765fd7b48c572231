"""
Capture processing: segment -> route -> crop -> (OCR | collect) -> join.

One call to process() is one unit of work. Crops and intermediate arrays
live only for the duration of that call.
"""

from concurrent.futures import Executor, Future
from typing import Iterable, List, Optional

import numpy as np

from copyhelper.capture.ocr import OcrEngine, TesseractOcr, preprocess_for_ocr
from copyhelper.capture.segmentation import RegionSegmenter
from copyhelper.config import get
from copyhelper.errors import InferenceError
from copyhelper.imaging import ImageInput, is_empty, to_bgr, to_pil, to_rgb_image
from copyhelper.logging_config import get_logger
from copyhelper.models.regions import Region, RegionKind
from copyhelper.models.results import ProcessedCapture

logger = get_logger(__name__)

PADDING = get("pipeline", "padding")
TEXT_SEPARATOR = get("pipeline", "text_separator")


def reading_order(regions: Iterable[Region]) -> List[Region]:
    """Top-to-bottom, then left-to-right."""
    return sorted(regions, key=lambda r: (r.bounds.y, r.bounds.x))


def crop(image: np.ndarray, region: Region, padding: int = PADDING) -> np.ndarray:
    height, width = image.shape[:2]
    bounds = region.bounds.pad(padding, width, height)
    return image[bounds.y:bounds.bottom, bounds.x:bounds.right]


class CaptureProcessingPipeline:
    """Turns one screen capture into photo crops and recognized text."""

    def __init__(
        self,
        segmenter: Optional[RegionSegmenter] = None,
        ocr: Optional[OcrEngine] = None,
        padding: int = PADDING,
        separator: str = TEXT_SEPARATOR,
    ):
        self.segmenter = segmenter or RegionSegmenter()
        self.ocr = ocr or TesseractOcr()
        self.padding = padding
        self.separator = separator

    def process(self, image: ImageInput) -> ProcessedCapture:
        if image is None or is_empty(image):
            return ProcessedCapture()

        source = to_bgr(image)
        regions = self.segmenter.segment(source)

        photos = [
            to_rgb_image(crop(source, region, self.padding))
            for region in regions
            if region.kind is RegionKind.PHOTO
        ]

        text_regions = reading_order(r for r in regions if r.kind is RegionKind.TEXT)
        parts = []
        for region in text_regions:
            text = self._read(preprocess_for_ocr(crop(source, region, self.padding)), region)
            if text.strip():
                parts.append(text.strip())

        if not parts:
            # Whole-image pass only when the regions gave nothing
            text = self._read(preprocess_for_ocr(source), None)
            if text.strip():
                parts.append(text.strip())

        logger.info(
            f"Processed capture: {len(photos)} photos, "
            f"{len(text_regions)} text regions, {sum(len(p) for p in parts)} chars"
        )
        return ProcessedCapture(photos=photos, text=self.separator.join(parts), regions=regions)

    def process_async(self, image: ImageInput, executor: Executor) -> "Future[ProcessedCapture]":
        """Run process() as a single background unit of work."""
        return executor.submit(self.process, image)

    def _read(self, image, region: Optional[Region]) -> str:
        try:
            return self.ocr.read_text(to_pil(image)) or ""
        except InferenceError as e:
            where = f"region {region.to_dict()}" if region else "whole image"
            logger.warning(f"OCR failed on {where}: {e}")
            return ""
