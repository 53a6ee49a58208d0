"""
Input acquisition: grayscale rasters from files, base64 payloads and URLs.
"""

from barscan.acquisition.image_loader import (
    read_gray_from_base64,
    read_gray_from_path,
    read_gray_from_url,
    read_gray_image,
)

__all__ = [
    "read_gray_from_path",
    "read_gray_from_base64",
    "read_gray_from_url",
    "read_gray_image",
]
