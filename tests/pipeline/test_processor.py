"""
Unit tests for the pipeline orchestrator.

Detection and decoding are replaced by deterministic stubs so the
orchestration (partitioning, ordering, canonical decode quad, failure
policies) can be checked exactly.
"""

import cv2
import numpy as np
import pytest
from pydantic import ValidationError

from barscan.common.errors import (
    DecodeError,
    DetectionError,
    ErrorCode,
    GeometryError,
    NoBarcodeDetected,
)
from barscan.enhancement.config import GlobalContrastConfig, PassthroughConfig
from barscan.pipeline.config_loader import DebugConfig, ExecutionConfig, PipelineConfig
from barscan.pipeline.processor import (
    BarcodePipeline,
    detect_and_decode,
    partition_candidates,
    payload_to_text,
)
from barscan.pipeline.types import FailurePolicy
from barscan.rectification.types import ExpansionPolicy


@pytest.fixture
def scene():
    """400x300 grayscale scene with texture everywhere."""
    rng = np.random.default_rng(7)
    return rng.integers(0, 256, (300, 400), dtype=np.uint8)


def _config(policy=FailurePolicy.ABORT, workers=1, enhancement=None):
    return PipelineConfig(
        enhancement=enhancement or PassthroughConfig(),
        execution=ExecutionConfig(failure_policy=policy, max_workers=workers),
    )


class SizeDecoder:
    """Decoder naming each candidate by the canonical quad it receives."""

    def decode(self, image, points):
        w, h = points[2]
        return f"{int(w)}x{int(h)}"


class TestPartitionCandidates:
    def test_groups_of_four_in_order(self, two_candidate_points):
        groups = partition_candidates(two_candidate_points)

        assert len(groups) == 2
        np.testing.assert_array_equal(groups[0], two_candidate_points[:4])
        np.testing.assert_array_equal(groups[1], two_candidate_points[4:])

    def test_accepts_opencv_layout(self, two_candidate_points):
        groups = partition_candidates(two_candidate_points.reshape(2, 4, 2))
        assert len(groups) == 2

    @pytest.mark.parametrize("count", [1, 3, 5, 7])
    def test_non_multiple_of_four_rejected(self, count):
        with pytest.raises(NoBarcodeDetected):
            partition_candidates(np.zeros((count, 2), dtype=np.float32))

    def test_none_rejected(self):
        with pytest.raises(NoBarcodeDetected):
            partition_candidates(None)

    def test_empty_rejected(self):
        with pytest.raises(NoBarcodeDetected):
            partition_candidates(np.zeros((0, 2), dtype=np.float32))


class TestPayloadToText:
    def test_text_passes(self):
        assert payload_to_text("4006381333931") == "4006381333931"

    def test_utf8_bytes_decoded(self):
        assert payload_to_text("Grüße".encode("utf-8")) == "Grüße"

    def test_empty_means_no_symbol(self):
        assert payload_to_text("") is None
        assert payload_to_text(b"") is None
        assert payload_to_text(None) is None

    def test_invalid_utf8_raises(self):
        with pytest.raises(DecodeError) as exc_info:
            payload_to_text(b"\xff\xfe\xfd")

        assert exc_info.value.code == ErrorCode.INVALID_TEXT


class TestDetection:
    """Detection outcomes that end the pass before any candidate runs."""

    def test_detect_failure_raises_no_barcode(self, scene, stub_detector_cls, stub_decoder_cls):
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(success=False, points=None),
            decoder=stub_decoder_cls([]),
            config=_config(),
        )

        with pytest.raises(NoBarcodeDetected) as exc_info:
            pipeline.process(scene)

        assert exc_info.value.code == ErrorCode.NO_BARCODE_DETECTED

    def test_five_points_raise_no_barcode(self, scene, stub_detector_cls, stub_decoder_cls):
        points = np.array([[0, 0], [10, 0], [10, 5], [0, 5], [3, 3]], dtype=np.float32)
        decoder = stub_decoder_cls([])
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=points), decoder=decoder, config=_config()
        )

        with pytest.raises(NoBarcodeDetected):
            pipeline.process(scene)

        assert decoder.calls == []

    def test_success_with_none_points(self, scene, stub_detector_cls, stub_decoder_cls):
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(success=True, points=None),
            decoder=stub_decoder_cls([]),
            config=_config(),
        )

        with pytest.raises(NoBarcodeDetected):
            pipeline.process(scene)

    def test_detector_exception_wrapped(self, scene, stub_detector_cls, stub_decoder_cls):
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(error=RuntimeError("camera on fire")),
            decoder=stub_decoder_cls([]),
            config=_config(),
        )

        with pytest.raises(DetectionError, match="camera on fire"):
            pipeline.process(scene)

    def test_color_input_converted(self, scene, stub_detector_cls, stub_decoder_cls):
        detector = stub_detector_cls(success=False)
        pipeline = BarcodePipeline(
            detector=detector, decoder=stub_decoder_cls([]), config=_config()
        )

        with pytest.raises(NoBarcodeDetected):
            pipeline.process(cv2.cvtColor(scene, cv2.COLOR_GRAY2BGR))

        assert detector.calls[0].ndim == 2

    def test_invalid_image_rejected(self, stub_detector_cls, stub_decoder_cls):
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(), decoder=stub_decoder_cls([]), config=_config()
        )

        with pytest.raises(ValueError, match="None or empty"):
            pipeline.process(None)


class TestCandidateProcessing:
    """Per-candidate extraction, enhancement and decoding."""

    def test_two_candidates_in_detection_order(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points),
            decoder=stub_decoder_cls(["A1", "B2"]),
            config=_config(),
        )

        result = pipeline.process(scene)

        assert [info.code for info in result.codes] == ["A1", "B2"]
        assert result.candidate_count == 2
        assert result.failures == []
        for info, original in zip(result.codes, (two_candidate_points[:4], two_candidate_points[4:])):
            assert info.category == ""
            np.testing.assert_allclose([p.to_tuple() for p in info.points], original)

    def test_original_points_kept_with_expansion(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        config = _config()
        config.rectification.expansion = ExpansionPolicy.scale_from_centroid(1.5)
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points[:4]),
            decoder=stub_decoder_cls(["A1"]),
            config=config,
        )

        result = pipeline.process(scene)

        np.testing.assert_allclose(
            [p.to_tuple() for p in result.codes[0].points], two_candidate_points[:4]
        )

    def test_decoder_receives_canonical_quad(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        decoder = stub_decoder_cls(["A1"])
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points[:4]),
            decoder=decoder,
            config=_config(),
        )

        pipeline.process(scene)

        image, points = decoder.calls[0]
        assert image.shape == (30, 100)
        np.testing.assert_array_equal(points, [[0, 0], [100, 0], [100, 30], [0, 30]])
        np.testing.assert_array_equal(image, scene[10:40, 10:110])

    def test_decoder_receives_enhanced_raster(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        decoder = stub_decoder_cls(["A1"])
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points[:4]),
            decoder=decoder,
            config=_config(enhancement=GlobalContrastConfig()),
        )

        pipeline.process(scene)

        image, _ = decoder.calls[0]
        np.testing.assert_array_equal(image, cv2.equalizeHist(scene[10:40, 10:110]))

    def test_tall_candidate_decoded_wide(self, scene, stub_detector_cls, stub_decoder_cls):
        tall = np.array([[50, 50], [80, 50], [80, 170], [50, 170]], dtype=np.float32)
        decoder = stub_decoder_cls(["T"])
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=tall), decoder=decoder, config=_config()
        )

        pipeline.process(scene)

        image, points = decoder.calls[0]
        assert image.shape == (30, 120)
        np.testing.assert_array_equal(points[2], [120, 30])

    def test_empty_decode_is_not_an_error(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points),
            decoder=stub_decoder_cls(["", None]),
            config=_config(),
        )

        result = pipeline.process(scene)

        assert result.codes == []
        assert result.is_empty()
        assert [f.error.code for f in result.failures] == [ErrorCode.NO_SYMBOL] * 2

    def test_source_not_modified(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        original = scene.copy()
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points),
            decoder=stub_decoder_cls(["A1", "B2"]),
            config=_config(enhancement=GlobalContrastConfig()),
        )

        pipeline.process(scene)

        np.testing.assert_array_equal(scene, original)

    def test_observer_called_per_candidate(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        seen = []

        def observer(index, quad, rectified, enhanced):
            seen.append((index, rectified.shape, enhanced.shape))

        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points),
            decoder=stub_decoder_cls(["A1", "B2"]),
            config=_config(),
            observer=observer,
        )

        pipeline.process(scene)

        assert seen == [(0, (30, 100), (30, 100)), (1, (30, 100), (30, 100))]

    def test_debug_config_writes_rasters(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls, tmp_path
    ):
        config = _config()
        config.debug = DebugConfig(enabled=True, output_dir=str(tmp_path / "debug"))
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points),
            decoder=stub_decoder_cls(["A1", "B2"]),
            config=config,
        )

        pipeline.process(scene)

        names = sorted(p.name for p in (tmp_path / "debug").iterdir())
        assert names == ["code_0.png", "code_1.png", "enhance_0.png", "enhance_1.png"]

    @pytest.mark.parametrize("policy", [FailurePolicy.ABORT, FailurePolicy.ISOLATE])
    def test_failing_observer_does_not_sink_pass(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls, policy, caplog
    ):
        def observer(index, quad, rectified, enhanced):
            raise OSError("disk full")

        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points),
            decoder=stub_decoder_cls(["A1", "B2"]),
            config=_config(policy=policy),
            observer=observer,
        )

        result = pipeline.process(scene)

        assert [info.code for info in result.codes] == ["A1", "B2"]
        assert result.failures == []
        assert "observer failed: disk full" in caplog.text

    def test_unwritable_debug_dir_does_not_sink_pass(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls, tmp_path
    ):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file where the debug directory should be")
        config = _config(policy=FailurePolicy.ISOLATE)
        config.debug = DebugConfig(enabled=True, output_dir=str(blocker / "debug"))
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points),
            decoder=stub_decoder_cls(["A1", "B2"]),
            config=config,
        )

        result = pipeline.process(scene)

        assert [info.code for info in result.codes] == ["A1", "B2"]

class TestFailurePolicy:
    """Abort and isolate behaviour for per-candidate errors."""

    def test_invalid_utf8_aborts_by_default(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points),
            decoder=stub_decoder_cls([b"\xff\xfe", "B2"]),
            config=_config(),
        )

        with pytest.raises(DecodeError) as exc_info:
            pipeline.process(scene)

        assert exc_info.value.code == ErrorCode.INVALID_TEXT

    def test_invalid_utf8_isolated(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points),
            decoder=stub_decoder_cls([b"\xff\xfe", "B2"]),
            config=_config(policy=FailurePolicy.ISOLATE),
        )

        result = pipeline.process(scene)

        assert [info.code for info in result.codes] == ["B2"]
        assert len(result.failures) == 1
        assert result.failures[0].index == 0
        assert result.failures[0].error.code == ErrorCode.INVALID_TEXT

    def test_decoder_exception_wrapped(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=two_candidate_points),
            decoder=stub_decoder_cls([RuntimeError("bad symbol"), "B2"]),
            config=_config(policy=FailurePolicy.ISOLATE),
        )

        result = pipeline.process(scene)

        assert result.failures[0].error.code == ErrorCode.DECODER_FAILURE
        assert [info.code for info in result.codes] == ["B2"]

    def test_degenerate_candidate_aborts(self, scene, stub_detector_cls, stub_decoder_cls):
        points = np.array(
            [[0, 0], [10, 0], [20, 0], [30, 0], [10, 10], [110, 10], [110, 40], [10, 40]],
            dtype=np.float32,
        )
        decoder = stub_decoder_cls(["B2"])
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=points), decoder=decoder, config=_config()
        )

        with pytest.raises(GeometryError):
            pipeline.process(scene)

        assert decoder.calls == []

    def test_degenerate_candidate_isolated(self, scene, stub_detector_cls, stub_decoder_cls):
        points = np.array(
            [[0, 0], [10, 0], [20, 0], [30, 0], [10, 10], [110, 10], [110, 40], [10, 40]],
            dtype=np.float32,
        )
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=points),
            decoder=stub_decoder_cls(["B2"]),
            config=_config(policy=FailurePolicy.ISOLATE),
        )

        result = pipeline.process(scene)

        assert [info.code for info in result.codes] == ["B2"]
        assert result.failures[0].error.code == ErrorCode.DEGENERATE_GEOMETRY

    def test_coincident_corners_are_invalid_quadrilateral(
        self, scene, stub_detector_cls, stub_decoder_cls
    ):
        points = np.array([[0, 0], [0, 0], [10, 10], [0, 10]], dtype=np.float32)
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=points),
            decoder=stub_decoder_cls([]),
            config=_config(),
        )

        with pytest.raises(GeometryError) as exc_info:
            pipeline.process(scene)

        assert exc_info.value.code == ErrorCode.INVALID_QUADRILATERAL


class TestConcurrentCandidates:
    def test_workers_preserve_order(self, scene, stub_detector_cls):
        widths = [40, 60, 80, 100, 120, 140]
        points = np.concatenate(
            [
                np.array([[10, y], [10 + w, y], [10 + w, y + 20], [10, y + 20]], dtype=np.float32)
                for w, y in zip(widths, range(10, 280, 45))
            ]
        )
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=points),
            decoder=SizeDecoder(),
            config=_config(workers=4),
        )

        result = pipeline.process(scene)

        assert [info.code for info in result.codes] == [f"{w}x20" for w in widths]

    def test_workers_abort_on_error(self, scene, stub_detector_cls):
        class FailingDecoder:
            def decode(self, image, points):
                raise RuntimeError("decoder crashed")

        points = np.array(
            [[10, 10], [110, 10], [110, 40], [10, 40]] * 3, dtype=np.float32
        )
        pipeline = BarcodePipeline(
            detector=stub_detector_cls(points=points),
            decoder=FailingDecoder(),
            config=_config(workers=3),
        )

        with pytest.raises(DecodeError, match="decoder crashed"):
            pipeline.process(scene)


class TestDetectAndDecode:
    def test_overrides_apply(self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls):
        decoder = stub_decoder_cls(["A1"])

        codes = detect_and_decode(
            scene,
            PassthroughConfig(),
            ExpansionPolicy.none(),
            detector=stub_detector_cls(points=two_candidate_points[:4]),
            decoder=decoder,
            config=_config(enhancement=GlobalContrastConfig()),
        )

        assert [c.code for c in codes] == ["A1"]
        image, _ = decoder.calls[0]
        np.testing.assert_array_equal(image, scene[10:40, 10:110])

    def test_default_config_expands(self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls):
        decoder = stub_decoder_cls(["A1"])

        detect_and_decode(
            scene,
            detector=stub_detector_cls(points=two_candidate_points[:4]),
            decoder=decoder,
        )

        image, _ = decoder.calls[0]
        assert image.shape == (45, 150)

    def test_empty_list_when_nothing_decodes(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        codes = detect_and_decode(
            scene,
            detector=stub_detector_cls(points=two_candidate_points),
            decoder=stub_decoder_cls([None, None]),
            config=_config(),
        )

        assert codes == []

    def test_enhancement_mapping_accepted(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        decoder = stub_decoder_cls(["A1"])

        codes = detect_and_decode(
            scene,
            {"strategy": "global_contrast"},
            ExpansionPolicy.none(),
            detector=stub_detector_cls(points=two_candidate_points[:4]),
            decoder=decoder,
            config=_config(),
        )

        assert [c.code for c in codes] == ["A1"]
        image, _ = decoder.calls[0]
        np.testing.assert_array_equal(image, cv2.equalizeHist(scene[10:40, 10:110]))

    def test_unknown_enhancement_mapping_rejected(
        self, scene, two_candidate_points, stub_detector_cls, stub_decoder_cls
    ):
        decoder = stub_decoder_cls(["A1"])

        with pytest.raises(ValidationError):
            detect_and_decode(
                scene,
                {"strategy": "sharpen"},
                detector=stub_detector_cls(points=two_candidate_points[:4]),
                decoder=decoder,
                config=_config(),
            )

        assert decoder.calls == []
