"""Screen-capture processing: segmentation, OCR and the capture pipeline."""

from .ocr import OcrEngine, TesseractOcr, preprocess_for_ocr
from .pipeline import CaptureProcessingPipeline, reading_order
from .segmentation import RegionSegmenter, merge_regions

__all__ = [
    "CaptureProcessingPipeline",
    "OcrEngine",
    "RegionSegmenter",
    "TesseractOcr",
    "merge_regions",
    "preprocess_for_ocr",
    "reading_order",
]
