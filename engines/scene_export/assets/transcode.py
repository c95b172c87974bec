"""Image normalisation and synthesis for the content store.

Pixel grids follow the source convention: row 0 is the bottom row and
channel values are floats in [0, 1]. PNG output is written top row first.
"""
from __future__ import annotations

import io
from typing import Optional, Sequence

import numpy as np
from PIL import Image, UnidentifiedImageError


class TranscodeError(ValueError):
    pass


def transcode_to_png(data: bytes) -> bytes:
    """Decode any Pillow-readable image and re-encode it as PNG."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA", "L", "LA"):
                img = img.convert("RGBA")
            out = io.BytesIO()
            img.save(out, format="PNG")
            return out.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise TranscodeError(str(exc)) from exc


def is_png(data: bytes) -> bool:
    return data[:8] == b"\x89PNG\r\n\x1a\n"


def encode_pixels_png(pixels: np.ndarray) -> bytes:
    """Encode an HxW, HxWx3 or HxWx4 float array as an 8-bit PNG."""
    arr = np.asarray(pixels, dtype=np.float64)
    if arr.ndim == 2:
        arr = arr[:, :, None]
    if arr.ndim != 3 or arr.shape[0] == 0 or arr.shape[1] == 0:
        raise TranscodeError(f"unsupported pixel grid shape {arr.shape}")
    channels = arr.shape[2]
    if channels == 1:
        arr = np.concatenate([arr, arr, arr, np.ones_like(arr)], axis=2)
    elif channels == 3:
        arr = np.concatenate([arr, np.ones(arr.shape[:2] + (1,))], axis=2)
    elif channels != 4:
        raise TranscodeError(f"unsupported channel count {channels}")

    arr = np.nan_to_num(arr, nan=0.0, posinf=1.0, neginf=0.0)
    arr = np.clip(arr, 0.0, 1.0)
    rgba = np.flipud(np.rint(arr * 255.0).astype(np.uint8))
    out = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(rgba)).save(out, format="PNG")
    return out.getvalue()


def heightmap_pixels(heights: Sequence[Sequence[float]]) -> np.ndarray:
    h = np.asarray(heights, dtype=np.float64)
    if h.ndim != 2:
        raise TranscodeError("height grid must be two-dimensional")
    return np.stack([h, h, h, np.ones_like(h)], axis=2)


def splatmap_pixels(alphamaps: Sequence[Sequence[Sequence[float]]]) -> Optional[np.ndarray]:
    """Pack up to four alphamap layers (H x W x L) into RGBA."""
    a = np.asarray(alphamaps, dtype=np.float64)
    if a.ndim != 3 or a.shape[0] == 0 or a.shape[1] == 0 or a.shape[2] == 0:
        return None
    rgba = np.zeros(a.shape[:2] + (4,))
    layers = min(a.shape[2], 4)
    rgba[:, :, :layers] = a[:, :, :layers]
    return rgba
