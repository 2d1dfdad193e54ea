"""Test module for the dense stereo pipeline"""

from datetime import datetime

import pytest
import numpy as np

from src_dense_stereo import CalibrationParameters, CalibrationState, DenseStereo, SGBMEngine
from src_dense_stereo.disparity import MatcherConfiguration
from src_dense_stereo.exceptions import (
    ConfigurationUnavailable, DimensionMismatch, MatcherFailure, UnsupportedImageFormat
)
from src_dense_stereo.image_buffer import ImageBuffer
from src_dense_stereo.image_io import load_pgm, save_pgm

from conftest import IMAGE_HEIGHT, IMAGE_WIDTH, StubMatcher


class TestProcessFramePair:
    """Test the frame pair entry point"""

    def test_zero_disparity_gives_black_images(self, ready_calibration, stub_matcher):
        """Test a matcher reporting no disparity produces all-zero outputs"""
        pipeline = DenseStereo(ready_calibration, stub_matcher)
        frame = np.zeros((IMAGE_HEIGHT, IMAGE_WIDTH, 3), dtype=np.uint8)

        left, right = pipeline.process_frame_pair(frame, frame)

        assert left.shape == right.shape == (IMAGE_HEIGHT, IMAGE_WIDTH)
        assert left.dtype == right.dtype == np.uint8
        assert not left.any()
        assert not right.any()

    def test_identical_frames_with_sgbm(self, ready_calibration, textured_image):
        """Test identical textured frames give no disparity with the real engine"""
        pipeline = DenseStereo(ready_calibration, SGBMEngine(MatcherConfiguration(disp_max=31)))

        disparity_left, disparity_right = pipeline.compute_raw_disparity(textured_image, textured_image)
        left, right = pipeline.process_frame_pair(textured_image, textured_image)

        assert disparity_left.max() < 1.0
        assert disparity_right.max() < 1.0
        assert left.shape == right.shape == textured_image.shape

    def test_mismatched_frames_skip_matching(self, ready_calibration, stub_matcher):
        """Test frames of different size fail before the matcher runs"""
        pipeline = DenseStereo(ready_calibration, stub_matcher)
        left = np.zeros((IMAGE_HEIGHT, IMAGE_WIDTH), dtype=np.uint8)
        right = np.zeros((IMAGE_HEIGHT, IMAGE_WIDTH + 1), dtype=np.uint8)

        with pytest.raises(DimensionMismatch) as excinfo:
            pipeline.process_frame_pair(left, right)

        assert "I1: 640 x 480, I2: 641 x 480" in str(excinfo.value)
        assert stub_matcher.calls == []

    def test_mismatched_frames_before_loading(self, calibration_file, stub_matcher):
        calibration = CalibrationParameters(calibration_file)
        pipeline = DenseStereo(calibration, stub_matcher)

        with pytest.raises(DimensionMismatch):
            pipeline.process_frame_pair(np.zeros((480, 640), np.uint8), np.zeros((480, 641), np.uint8))
        assert calibration.state is CalibrationState.UNLOADED

    def test_calibration_loaded_on_demand(self, calibration_file, stub_matcher):
        calibration = CalibrationParameters(calibration_file, image_size=(IMAGE_WIDTH, IMAGE_HEIGHT))
        pipeline = DenseStereo(calibration, stub_matcher)
        frame = np.zeros((IMAGE_HEIGHT, IMAGE_WIDTH), dtype=np.uint8)

        pipeline.process_frame_pair(frame, frame)

        assert calibration.state is CalibrationState.MAPS_READY
        assert len(stub_matcher.calls) == 1

    def test_no_calibration_available(self, stub_matcher):
        pipeline = DenseStereo(CalibrationParameters(), stub_matcher)
        frame = np.zeros((IMAGE_HEIGHT, IMAGE_WIDTH), dtype=np.uint8)

        with pytest.raises(ConfigurationUnavailable):
            pipeline.process_frame_pair(frame, frame)
        assert stub_matcher.calls == []

    def test_frames_are_not_modified(self, ready_calibration, stub_matcher, textured_image):
        original = textured_image.copy()
        DenseStereo(ready_calibration, stub_matcher).process_frame_pair(textured_image, textured_image)

        np.testing.assert_array_equal(textured_image, original)

    def test_output_is_normalized_to_common_maximum(self, ready_calibration):
        matcher = StubMatcher(left_value=10.0, right_value=20.0)
        frame = np.zeros((IMAGE_HEIGHT, IMAGE_WIDTH), dtype=np.uint8)

        left, right = DenseStereo(ready_calibration, matcher).process_frame_pair(frame, frame)

        assert np.all(left == 127)
        assert np.all(right == 255)

    def test_matcher_receives_grayscale(self, ready_calibration, stub_matcher):
        frame = np.zeros((IMAGE_HEIGHT, IMAGE_WIDTH, 3), dtype=np.uint16)
        DenseStereo(ready_calibration, stub_matcher).process_frame_pair(frame, frame)

        assert stub_matcher.calls == [((IMAGE_HEIGHT, IMAGE_WIDTH), (IMAGE_HEIGHT, IMAGE_WIDTH))]

    def test_unsupported_frame(self, ready_calibration, stub_matcher):
        frame = np.zeros((IMAGE_HEIGHT, IMAGE_WIDTH), dtype=np.float32)
        with pytest.raises(UnsupportedImageFormat):
            DenseStereo(ready_calibration, stub_matcher).process_frame_pair(frame, frame)

    def test_matcher_with_wrong_output_shape(self, ready_calibration):
        matcher = StubMatcher(shape=(10, 10))
        frame = np.zeros((IMAGE_HEIGHT, IMAGE_WIDTH), dtype=np.uint8)

        with pytest.raises(MatcherFailure):
            DenseStereo(ready_calibration, matcher).process_frame_pair(frame, frame)

    def test_sgbm_on_shifted_texture(self, ready_calibration, textured_image):
        """Test the default engine finds structure in a shifted texture"""
        right = np.ascontiguousarray(np.roll(textured_image, -8, axis=1))
        pipeline = DenseStereo(ready_calibration, SGBMEngine(MatcherConfiguration(disp_max=31)))

        left_output, right_output = pipeline.process_frame_pair(textured_image, right)

        assert left_output.shape == (IMAGE_HEIGHT, IMAGE_WIDTH)
        assert max(left_output.max(), right_output.max()) == 255
        assert left_output.mean() > 0


class TestRawDisparity:
    """Test raw disparity and distance computation"""

    def test_without_rectification(self, stub_matcher):
        pipeline = DenseStereo(CalibrationParameters(), stub_matcher)
        buffer = ImageBuffer(32, 16, init=True)

        left, right = pipeline.compute_raw_disparity(buffer, buffer.copy(), rectify=False)

        assert left.shape == (16, 32)
        assert left.dtype == np.float32

    def test_distance_image(self, ready_calibration):
        matcher = StubMatcher(left_value=10.0)
        frame = np.zeros((IMAGE_HEIGHT, IMAGE_WIDTH), dtype=np.uint8)
        captured = datetime(2024, 1, 1, 12, 0)

        image = DenseStereo(ready_calibration, matcher).compute_distance_image(frame, frame, time=captured)

        assert (image.width, image.height) == (IMAGE_WIDTH, IMAGE_HEIGHT)
        assert image.time == captured
        # 500 px focal length, 0.12 m baseline
        assert float(np.nanmedian(image.data)) == pytest.approx(6.0, rel=0.05)

    def test_rectify_computes_maps(self, loaded_calibration, stub_matcher, textured_image):
        pipeline = DenseStereo(loaded_calibration, stub_matcher)
        rectified = pipeline.rectify(textured_image, is_right_camera=True)

        assert rectified.shape == textured_image.shape
        assert loaded_calibration.is_ready

    def test_rotate_image(self):
        image = np.zeros((20, 20), dtype=np.uint8)
        image[:5] = 255

        rotated = DenseStereo.rotate_image(image, 180)

        assert rotated.shape == (20, 20)
        assert np.all(rotated[17, 5:15] == 255)
        assert np.all(rotated[2, 5:15] == 0)
        np.testing.assert_array_equal(DenseStereo.rotate_image(image, 0), image)

    def test_from_config(self, tmp_path, calibration_file):
        from config.config import Config
        import json

        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({
            "calibration_file": calibration_file.name,
            "matcher": {"disp_max": 63},
            "block_size": 7
        }))

        pipeline = DenseStereo.from_config(Config(str(config_path)))

        assert pipeline.calibration.calibration_file.resolve() == calibration_file.resolve()
        assert pipeline.matcher.num_disparities == 64
        assert pipeline.matcher.block_size == 7


class TestImageFiles:
    """Test processing of PGM file pairs"""

    def test_output_path(self, tmp_path):
        assert DenseStereo.disparity_output_path(tmp_path / "left.pgm") == tmp_path / "left_disp.pgm"

    def test_process_image_files(self, tmp_path, ready_calibration, textured_image):
        matcher = StubMatcher(left_value=4.0, right_value=2.0)
        save_pgm(textured_image, tmp_path / "left.pgm")
        save_pgm(textured_image, tmp_path / "right.pgm")

        output_left, output_right = DenseStereo(ready_calibration, matcher).process_image_files(
            tmp_path / "left.pgm", tmp_path / "right.pgm"
        )

        assert output_left == tmp_path / "left_disp.pgm"
        assert np.all(load_pgm(output_left).access == 255)
        assert np.all(load_pgm(output_right).access == 127)

    def test_process_mismatched_files(self, tmp_path, ready_calibration, stub_matcher):
        save_pgm(np.zeros((10, 10), np.uint8), tmp_path / "a.pgm")
        save_pgm(np.zeros((10, 12), np.uint8), tmp_path / "b.pgm")

        with pytest.raises(DimensionMismatch):
            DenseStereo(ready_calibration, stub_matcher).process_image_files(
                tmp_path / "a.pgm", tmp_path / "b.pgm"
            )
        assert not (tmp_path / "a_disp.pgm").exists()
