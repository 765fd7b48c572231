"""
Conversions between PIL images, OpenCV arrays and encoded bytes.

OpenCV code in this package works on BGR (or grayscale) uint8 arrays;
everything handed to callers or encoders is a PIL image.
"""

import io
from typing import Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

ImageInput = Union[Image.Image, np.ndarray]


def to_bgr(image: ImageInput) -> np.ndarray:
    """BGR (or untouched grayscale) uint8 array from a PIL image or array."""
    if isinstance(image, Image.Image):
        if image.mode == "L":
            return np.asarray(image, dtype=np.uint8).copy()
        rgb = np.asarray(image.convert("RGB"), dtype=np.uint8)
        return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)

    array = np.asarray(image)
    if array.dtype != np.uint8:
        array = np.clip(array, 0, 255).astype(np.uint8)
    if array.ndim == 3 and array.shape[2] == 4:
        return cv2.cvtColor(array, cv2.COLOR_BGRA2BGR)
    return array


def to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def to_pil(image: ImageInput) -> Image.Image:
    """PIL RGB (or L for single-channel) image from an OpenCV array."""
    if isinstance(image, Image.Image):
        if image.mode in ("RGB", "L"):
            return image
        return image.convert("RGB")

    array = np.asarray(image)
    if array.dtype != np.uint8:
        array = np.clip(array, 0, 255).astype(np.uint8)
    if array.ndim == 2:
        return Image.fromarray(array, mode="L")
    if array.shape[2] == 4:
        return Image.fromarray(cv2.cvtColor(array, cv2.COLOR_BGRA2RGB))
    return Image.fromarray(cv2.cvtColor(array, cv2.COLOR_BGR2RGB))


def to_rgb_image(image: ImageInput) -> Image.Image:
    """PIL image in RGB mode, whatever the source layout."""
    pil = to_pil(image)
    return pil if pil.mode == "RGB" else pil.convert("RGB")


def image_size(image: ImageInput) -> tuple:
    """(width, height) of a PIL image or array."""
    if isinstance(image, Image.Image):
        return image.size
    array = np.asarray(image)
    if array.ndim < 2:
        return (0, 0)
    return (array.shape[1], array.shape[0])


def is_empty(image: ImageInput) -> bool:
    width, height = image_size(image)
    return width == 0 or height == 0


def decode_image_bytes(data: bytes) -> Image.Image:
    """Decode PNG/JPEG/... bytes. Raises ValueError for undecodable data."""
    if not data:
        raise ValueError("empty image data")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"undecodable image: {e}") from e
    return image
