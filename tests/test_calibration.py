"""Test module for the calibration store"""

import math

import pytest
import numpy as np

from src_dense_stereo.calibration import (
    CalibrationParameters, CalibrationState, CameraCalibration, ExtrinsicCalibration,
    StereoCameraCalibration, SCALAR_FIELDS
)
from src_dense_stereo.exceptions import (
    ConfigurationCorrupt, ConfigurationUnavailable, DenseStereoIOError, RectificationFailed
)

from conftest import IMAGE_HEIGHT, IMAGE_WIDTH, write_calibration_yaml


class TestCalibrationLoading:
    """Test loading calibration from files and records"""

    def test_load_from_file(self, calibration_file, calibration_values):
        calibration = CalibrationParameters(calibration_file)
        calibration.load_parameters()

        assert calibration.state is CalibrationState.LOADED
        assert calibration.get_scalar_fields() == calibration_values
        assert calibration.maps is None

    def test_load_top_level_fields(self, tmp_path, calibration_values):
        """Test scalars may also sit at the top level of the file"""
        path = write_calibration_yaml(tmp_path / "flat.yml", calibration_values, nested=False)
        calibration = CalibrationParameters(path)
        calibration.load_parameters()

        assert calibration.get_scalar_fields()['tx'] == -0.12

    def test_no_file_configured(self):
        calibration = CalibrationParameters()
        with pytest.raises(ConfigurationUnavailable):
            calibration.load_parameters()
        assert calibration.state is CalibrationState.UNLOADED

    def test_missing_file(self, tmp_path):
        calibration = CalibrationParameters(tmp_path / "absent.yml")
        with pytest.raises(ConfigurationUnavailable, match="absent.yml"):
            calibration.load_parameters()

    def test_missing_distortion_coefficient(self, tmp_path, calibration_values):
        """Test a file without d21 is corrupt and leaves no maps behind"""
        del calibration_values['d21']
        path = write_calibration_yaml(tmp_path / "partial.yml", calibration_values)

        calibration = CalibrationParameters(path)
        with pytest.raises(ConfigurationCorrupt) as excinfo:
            calibration.load_parameters()

        assert excinfo.value.field == 'd21'
        assert 'd21' in str(excinfo.value)
        assert calibration.state is CalibrationState.UNLOADED
        assert calibration.maps is None
        with pytest.raises(RectificationFailed):
            calibration.calculate_undistort_and_rectify_maps()

    def test_failed_load_drops_previous_maps(self, tmp_path, ready_calibration, calibration_values):
        del calibration_values['fy2']
        ready_calibration.calibration_file = write_calibration_yaml(
            tmp_path / "partial.yml", calibration_values
        )

        with pytest.raises(ConfigurationCorrupt):
            ready_calibration.load_parameters()

        assert ready_calibration.state is CalibrationState.UNLOADED
        assert ready_calibration.maps is None

    def test_non_numeric_field(self, tmp_path, calibration_values):
        path = write_calibration_yaml(tmp_path / "calibration.yml", calibration_values)
        path.write_text(path.read_text().replace("cx1: 320.0", "cx1: centre"))

        calibration = CalibrationParameters(path)
        with pytest.raises(ConfigurationCorrupt) as excinfo:
            calibration.load_parameters()
        assert excinfo.value.field == 'cx1'

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "broken.yml"
        path.write_text("%YAML:1.0\n---\ncalibration: [1, 2\n")

        calibration = CalibrationParameters(path)
        with pytest.raises(ConfigurationCorrupt):
            calibration.load_parameters()
        assert calibration.state is CalibrationState.UNLOADED
        assert calibration.maps is None

    def test_set_from_record(self, stereo_calibration, calibration_values):
        calibration = CalibrationParameters()
        calibration.set_stereo_calibration_parameters(stereo_calibration)

        assert calibration.state is CalibrationState.LOADED
        assert calibration.get_scalar_fields() == calibration_values

    def test_record_with_non_finite_value(self, stereo_calibration):
        stereo_calibration.cam_right.fx = math.nan
        calibration = CalibrationParameters()

        with pytest.raises(ConfigurationCorrupt) as excinfo:
            calibration.set_stereo_calibration_parameters(stereo_calibration)
        assert excinfo.value.field == 'fx2'
        assert calibration.state is CalibrationState.UNLOADED

    def test_record_dict_conversion(self, stereo_calibration):
        data = stereo_calibration.to_dict()
        restored = StereoCameraCalibration.from_dict(data)

        assert restored == stereo_calibration
        assert data['extrinsic']['tx'] == -0.12


class TestCalibrationSaving:
    """Test persisting calibration"""

    def test_round_trip(self, tmp_path):
        """Test save then load gives identical scalars"""
        record = StereoCameraCalibration(
            cam_left=CameraCalibration(fx=812.25, fy=811.5, cx=319.75, cy=241.125,
                                       d0=-0.291, d1=0.1037, d2=0.00021, d3=-0.00013),
            cam_right=CameraCalibration(fx=815.0, fy=814.25, cx=322.5, cy=238.0,
                                        d0=-0.2874, d1=0.0991, d2=-0.0004, d3=0.00009),
            extrinsic=ExtrinsicCalibration(tx=-0.2513, ty=0.0021, tz=-0.0007,
                                           rx=0.0031, ry=-0.0112, rz=0.0009)
        )
        original = CalibrationParameters()
        original.set_stereo_calibration_parameters(record)
        path = original.save_configuration_file(tmp_path / "saved.yml")

        restored = CalibrationParameters(path)
        restored.load_parameters()

        assert restored.get_scalar_fields() == original.get_scalar_fields()
        assert list(restored.get_scalar_fields()) == list(SCALAR_FIELDS)

    def test_save_with_maps_writes_matrices(self, tmp_path, ready_calibration):
        import cv2

        path = ready_calibration.save_configuration_file(tmp_path / "saved.yml")
        storage = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
        try:
            Q = storage.getNode("Q").mat()
            width = int(storage.getNode("image_width").real())
        finally:
            storage.release()

        np.testing.assert_allclose(Q, ready_calibration.reprojection_matrix)
        assert width == IMAGE_WIDTH

    def test_save_overwrites(self, tmp_path, loaded_calibration):
        path = tmp_path / "saved.yml"
        path.write_text("old content")

        loaded_calibration.save_configuration_file(path)
        assert "fx1" in path.read_text()

    def test_save_unloaded(self, tmp_path):
        with pytest.raises(ConfigurationUnavailable):
            CalibrationParameters().save_configuration_file(tmp_path / "saved.yml")

    def test_save_unwritable(self, tmp_path, loaded_calibration):
        with pytest.raises(DenseStereoIOError):
            loaded_calibration.save_configuration_file(tmp_path / "missing" / "saved.yml")


class TestRectificationMaps:
    """Test map computation and the state machine around it"""

    def test_maps_before_load(self):
        with pytest.raises(RectificationFailed):
            CalibrationParameters().calculate_undistort_and_rectify_maps()

    def test_maps_shape(self, loaded_calibration):
        maps = loaded_calibration.calculate_undistort_and_rectify_maps()

        assert loaded_calibration.state is CalibrationState.MAPS_READY
        assert loaded_calibration.is_ready
        assert maps.image_size == (IMAGE_WIDTH, IMAGE_HEIGHT)
        for array in (maps.left_map_x, maps.left_map_y, maps.right_map_x, maps.right_map_y):
            assert array.shape == (IMAGE_HEIGHT, IMAGE_WIDTH)
            assert array.dtype == np.float32
        assert maps.Q.shape == (4, 4)

    def test_ideal_rig_maps_are_near_identity(self, ready_calibration):
        map_x, map_y = ready_calibration.maps.select(is_right_camera=False)
        assert abs(map_x[240, 320] - 320) < 1.0
        assert abs(map_y[240, 320] - 240) < 1.0

    def test_reprojection_matrix_requires_maps(self, loaded_calibration):
        with pytest.raises(RectificationFailed):
            loaded_calibration.reprojection_matrix

    def test_new_load_drops_maps(self, ready_calibration, stereo_calibration):
        """Test loading new parameters invalidates computed maps"""
        stereo_calibration.extrinsic.tx = -0.2
        ready_calibration.set_stereo_calibration_parameters(stereo_calibration)

        assert ready_calibration.state is CalibrationState.LOADED
        assert ready_calibration.maps is None

    def test_zero_baseline_is_corrupt(self, stereo_calibration):
        stereo_calibration.extrinsic.tx = 0.0
        calibration = CalibrationParameters()
        calibration.set_stereo_calibration_parameters(stereo_calibration)

        with pytest.raises(ConfigurationCorrupt):
            calibration.calculate_undistort_and_rectify_maps()

    def test_summary(self, ready_calibration):
        summary = ready_calibration.get_calibration_summary()

        assert summary['state'] == 'maps_ready'
        assert summary['image_size'] == f"{IMAGE_WIDTH}x{IMAGE_HEIGHT}"
        assert summary['baseline'] == pytest.approx(0.12)
        assert summary['has_maps']

    def test_geometry_validation(self, ready_calibration, stereo_calibration):
        assert ready_calibration.validate_geometry()['valid']
        assert ready_calibration.validate_geometry()['warnings'] == []

        stereo_calibration.cam_right.fx = 540.0
        stereo_calibration.cam_right.cx = 900.0
        ready_calibration.set_stereo_calibration_parameters(stereo_calibration)
        assert not ready_calibration.validate_geometry()['valid']

        ready_calibration._derive_matrices()
        warnings = ready_calibration.validate_geometry()['warnings']
        assert any("focal length" in warning for warning in warnings)
        assert any("width" in warning for warning in warnings)

    def test_to_dict(self, ready_calibration):
        data = ready_calibration.to_dict()
        assert data['scalars']['fx1'] == 500.0
        assert len(data['Q']) == 4

    def test_invalid_image_size(self):
        with pytest.raises(ValueError):
            CalibrationParameters(image_size=(0, 480))
