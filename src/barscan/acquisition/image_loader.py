"""
Image acquisition.

Produces the single-channel uint8 raster the pipeline consumes from a
filesystem path, a base64 payload (optionally a ``data:`` URI) or an
HTTP(S) URL.
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np
import requests

from barscan.common.errors import AcquisitionError, ErrorCode

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def _decode_bytes(data: bytes, origin: str) -> np.ndarray:
    if not data:
        raise AcquisitionError(f"Empty image data from {origin}", ErrorCode.UNDECODABLE_IMAGE)
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_GRAYSCALE)
    if image is None or image.size == 0:
        raise AcquisitionError(
            f"Could not decode image data from {origin}", ErrorCode.UNDECODABLE_IMAGE
        )
    return image


def read_gray_from_path(path: Union[str, Path]) -> np.ndarray:
    """
    Read an image file as grayscale.

    Relative paths resolve against the current working directory.

    Raises:
        AcquisitionError: 100 if the file is missing or unreadable.
    """
    path = Path(path)
    if not path.is_file():
        raise AcquisitionError(f"Image file not found: {path}", ErrorCode.FILE_UNREADABLE)

    image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise AcquisitionError(f"Failed to read image: {path}", ErrorCode.FILE_UNREADABLE)

    logger.debug(f"Loaded {path} ({image.shape[1]}x{image.shape[0]})")
    return image


def read_gray_from_base64(payload: str) -> np.ndarray:
    """
    Decode a base64 image payload as grayscale.

    Everything up to and including the first comma is dropped, so both raw
    base64 and ``data:image/png;base64,...`` URIs are accepted.

    Raises:
        AcquisitionError: 101 for invalid base64, 102 for bytes that are not
            a decodable image.
    """
    if "," in payload:
        payload = payload.split(",", 1)[1]

    try:
        data = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise AcquisitionError(f"Invalid base64 payload: {e}", ErrorCode.INVALID_BASE64) from e

    return _decode_bytes(data, "base64 payload")


def read_gray_from_url(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> np.ndarray:
    """
    Fetch an image over HTTP(S) and decode it as grayscale.

    Args:
        url: Image URL.
        timeout: Request timeout in seconds.
        session: Optional requests session (connection reuse, test doubles).

    Raises:
        AcquisitionError: 110 on transport failure, 111 on a non-2xx status,
            102 if the body is not a decodable image.
    """
    http = session if session is not None else requests
    try:
        response = http.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise AcquisitionError(
            f"Failed to fetch {url}: {e}", ErrorCode.TRANSPORT_FAILURE
        ) from e

    if not 200 <= response.status_code < 300:
        raise AcquisitionError(
            f"Failed to fetch {url}: HTTP {response.status_code}", ErrorCode.HTTP_STATUS
        )

    logger.info(f"Fetched {len(response.content)} bytes from {url}")
    return _decode_bytes(response.content, url)


def read_gray_image(source: Union[str, Path]) -> np.ndarray:
    """
    Read a grayscale raster from a path, URL or data URI.

    Example:
        >>> gray = read_gray_image("https://example.com/shelf.jpg")
        >>> gray = read_gray_image("samples/shelf.jpg")
    """
    if isinstance(source, str):
        lowered = source.lower()
        if lowered.startswith(("http://", "https://")):
            return read_gray_from_url(source)
        if lowered.startswith("data:"):
            return read_gray_from_base64(source)
    return read_gray_from_path(source)
