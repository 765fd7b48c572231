"""
Region segmentation for screen captures.

Splits a capture into rectangular photo and text regions using classical
OpenCV operations only: edge-based contour analysis for photos and an
adaptive-threshold "ink" mask for text blocks. Work happens on a copy
downscaled to a fixed processing width; bounds are scaled back to source
pixels before they are returned.
"""

from typing import Iterable, List, Sequence, Tuple

import cv2
import numpy as np

from copyhelper.config import get
from copyhelper.imaging import ImageInput, is_empty, to_bgr, to_gray
from copyhelper.logging_config import get_logger
from copyhelper.models.regions import Rect, Region, RegionKind

logger = get_logger(__name__)

PROCESSING_WIDTH = get("segmentation", "processing_width")
BLUR_KERNEL = get("segmentation", "blur_kernel")
CANNY_LOW = get("segmentation", "canny_low")
CANNY_HIGH = get("segmentation", "canny_high")
EDGE_DILATE_KERNEL = get("segmentation", "edge_dilate_kernel")
MIN_AREA_RATIO = get("segmentation", "min_area_ratio")
MAX_AREA_RATIO = get("segmentation", "max_area_ratio")
MIN_SOLIDITY = get("segmentation", "min_solidity")
MIN_RECTANGULARITY = get("segmentation", "min_rectangularity")
MIN_ASPECT_RATIO = get("segmentation", "min_aspect_ratio")
MAX_ASPECT_RATIO = get("segmentation", "max_aspect_ratio")

TEXT_BLOCK_SIZE = get("segmentation", "text", "adaptive_block_size")
TEXT_C = get("segmentation", "text", "adaptive_c")
TEXT_KERNEL = (get("segmentation", "text", "kernel_width"), get("segmentation", "text", "kernel_height"))
TEXT_DILATE_ITERATIONS = get("segmentation", "text", "dilate_iterations")
TEXT_MIN_AREA = get("segmentation", "text", "min_area")
TEXT_MAX_OVERLAP = get("segmentation", "text", "max_overlap")

CONTAINMENT_RATIO = get("segmentation", "merge", "containment_ratio")
ABSORB_RATIO = get("segmentation", "merge", "absorb_ratio")


def downscale(image: np.ndarray, width: int = PROCESSING_WIDTH) -> Tuple[np.ndarray, float]:
    """Resize to `width` keeping aspect; returns (image, source/processed scale)."""
    height, source_width = image.shape[:2]
    if source_width <= width:
        return image, 1.0
    scale = source_width / float(width)
    target_height = max(1, int(height / scale))
    resized = cv2.resize(image, (width, target_height), interpolation=cv2.INTER_AREA)
    return resized, scale


def overlap_ratio(rect: Rect, other: Rect) -> float:
    """Share of `rect`'s area that lies inside `other`."""
    if rect.area <= 0:
        return 0.0
    inter = rect.intersect(other)
    return 0.0 if inter is None else inter.area / rect.area


def is_photo_contour(contour: np.ndarray, image_area: int) -> bool:
    """Area, solidity, rectangularity and aspect filters for photo candidates."""
    area = cv2.contourArea(contour)
    if area < image_area * MIN_AREA_RATIO or area > image_area * MAX_AREA_RATIO:
        return False

    hull_area = cv2.contourArea(cv2.convexHull(contour))
    if hull_area <= 0 or area / hull_area < MIN_SOLIDITY:
        return False

    (_, _), (rect_w, rect_h), _ = cv2.minAreaRect(contour)
    rect_area = rect_w * rect_h
    if rect_area <= 0 or area / rect_area < MIN_RECTANGULARITY:
        return False

    _, _, w, h = cv2.boundingRect(contour)
    if h == 0:
        return False
    aspect = w / float(h)
    return MIN_ASPECT_RATIO <= aspect <= MAX_ASPECT_RATIO


def detect_photos(gray: np.ndarray) -> List[Rect]:
    """Photo candidates in processing coordinates."""
    blurred = cv2.GaussianBlur(gray, (BLUR_KERNEL, BLUR_KERNEL), 0)
    edges = cv2.Canny(blurred, CANNY_LOW, CANNY_HIGH)
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (EDGE_DILATE_KERNEL, EDGE_DILATE_KERNEL))
    edges = cv2.dilate(edges, kernel, iterations=1)

    contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    image_area = gray.shape[0] * gray.shape[1]

    photos = []
    for contour in contours:
        if is_photo_contour(contour, image_area):
            photos.append(Rect(*cv2.boundingRect(contour)))
    return photos


def detect_text(gray: np.ndarray, photos: Sequence[Rect] = ()) -> List[Rect]:
    """Text-block candidates in processing coordinates.

    Dark strokes are found with an inverted adaptive threshold and smeared
    horizontally so that glyphs, words and lines fuse into blocks. Blocks
    mostly inside a photo or an already accepted block are skipped.
    """
    ink = cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY_INV,
        TEXT_BLOCK_SIZE, TEXT_C,
    )
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, TEXT_KERNEL)
    ink = cv2.dilate(ink, kernel, iterations=TEXT_DILATE_ITERATIONS)

    contours, _ = cv2.findContours(ink, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    height, width = gray.shape[:2]
    candidates = [Rect(*cv2.boundingRect(c)) for c in contours]
    candidates.sort(key=lambda r: (-r.area, r.y, r.x))

    accepted: List[Rect] = []
    for rect in candidates:
        if rect.area < TEXT_MIN_AREA:
            continue
        if rect.x < 0 or rect.y < 0 or rect.right > width or rect.bottom > height:
            continue
        if any(overlap_ratio(rect, photo) > TEXT_MAX_OVERLAP for photo in photos):
            continue
        if any(overlap_ratio(rect, other) > TEXT_MAX_OVERLAP for other in accepted):
            continue
        accepted.append(rect)
    return accepted


def _merge_same_kind(regions: List[Region]) -> List[Region]:
    # Largest first so a region is only ever compared against bigger ones.
    ordered = sorted(regions, key=lambda r: r.area, reverse=True)
    merged: List[Region] = []
    for candidate in ordered:
        if candidate.area <= 0:
            continue
        absorbed = False
        for i, existing in enumerate(merged):
            inter = candidate.bounds.intersect(existing.bounds)
            if inter is None:
                continue
            if inter.area / candidate.area > CONTAINMENT_RATIO:
                absorbed = True
                break
            if inter.area / existing.area > ABSORB_RATIO:
                merged[i] = Region(existing.kind, existing.bounds.union(candidate.bounds))
                absorbed = True
                break
        if not absorbed:
            merged.append(candidate)
    return merged


def merge_regions(regions: Iterable[Region]) -> List[Region]:
    """Collapse overlapping regions of the same kind.

    A candidate mostly covered by an accepted region is dropped; an accepted
    region almost entirely inside the candidate is widened to the union.
    Photos come before text in the result.
    """
    regions = list(regions)
    result: List[Region] = []
    for kind in RegionKind:
        result.extend(_merge_same_kind([r for r in regions if r.kind is kind]))
    return result


def clamp_to_image(rect: Rect, width: int, height: int) -> Rect:
    left = min(max(0, rect.x), max(0, width - 1))
    top = min(max(0, rect.y), max(0, height - 1))
    right = min(width, max(left + 1, rect.right))
    bottom = min(height, max(top + 1, rect.bottom))
    return Rect(left, top, right - left, bottom - top)


class RegionSegmenter:
    """Splits a capture into photo and text regions.

    Stateless and deterministic: the same image always yields the same list.
    """

    def __init__(self, processing_width: int = PROCESSING_WIDTH):
        self.processing_width = processing_width

    def segment(self, image: ImageInput) -> List[Region]:
        if image is None or is_empty(image):
            return []

        bgr = to_bgr(image)
        source_height, source_width = bgr.shape[:2]
        small, scale = downscale(bgr, self.processing_width)
        gray = to_gray(small)

        photos = detect_photos(gray)
        texts = detect_text(gray, photos)

        regions = [
            Region(kind, clamp_to_image(rect.scaled(scale), source_width, source_height))
            for kind, rects in ((RegionKind.PHOTO, photos), (RegionKind.TEXT, texts))
            for rect in rects
        ]
        merged = merge_regions(regions)
        logger.debug(
            f"Segmented {source_width}x{source_height} capture: "
            f"{sum(r.kind is RegionKind.PHOTO for r in merged)} photo, "
            f"{sum(r.kind is RegionKind.TEXT for r in merged)} text"
        )
        return merged
