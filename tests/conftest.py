"""
Pytest Configuration and Shared Fixtures

Synthetic rasters, candidate corners and stub detect/decode capabilities
available to all test modules.
"""

import numpy as np
import pytest


class StubDetector:
    """Detector returning fixed points, recording the images it saw."""

    def __init__(self, success=True, points=None, error=None):
        self.success = success
        self.points = points
        self.error = error
        self.calls = []

    def detect(self, image):
        self.calls.append(image)
        if self.error is not None:
            raise self.error
        return self.success, self.points


class StubDecoder:
    """Decoder returning queued payloads in call order."""

    def __init__(self, payloads):
        self.payloads = list(payloads)
        self.calls = []

    def decode(self, image, points):
        self.calls.append((image.copy(), np.asarray(points).copy()))
        payload = self.payloads[len(self.calls) - 1]
        if isinstance(payload, Exception):
            raise payload
        return payload


@pytest.fixture
def stub_detector_cls():
    return StubDetector


@pytest.fixture
def stub_decoder_cls():
    return StubDecoder


@pytest.fixture
def gradient_image():
    """200x100 grayscale raster with distinct values in every pixel row/col."""
    cols = np.arange(200, dtype=np.uint16)
    rows = np.arange(100, dtype=np.uint16)[:, None]
    return ((cols + rows * 3) % 256).astype(np.uint8)


@pytest.fixture
def barcode_like_image():
    """
    Grayscale scene with a stripe pattern inside a dark-on-light panel.

    Returns:
        (image, corners) with corners TL, TR, BR, BL of the striped panel.
    """
    import cv2

    image = np.full((300, 400), 220, dtype=np.uint8)
    for x in range(100, 300, 8):
        cv2.rectangle(image, (x, 120), (x + 3, 180), 20, -1)
    corners = np.array([[100, 120], [300, 120], [300, 180], [100, 180]], dtype=np.float32)
    return image, corners


@pytest.fixture
def two_candidate_points():
    """Flat (8, 2) point list for two disjoint wide candidates."""
    return np.array(
        [
            [10, 10], [110, 10], [110, 40], [10, 40],
            [150, 60], [250, 60], [250, 90], [150, 90],
        ],
        dtype=np.float32,
    )


@pytest.fixture
def flat_raster():
    return np.full((40, 120), 128, dtype=np.uint8)
