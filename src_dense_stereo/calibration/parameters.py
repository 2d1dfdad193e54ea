"""
Stereo calibration parameter store.

Owns the scalar calibration of a two-camera rig, persists and restores it via
OpenCV FileStorage, and computes the rectification maps. The store moves
through three states:

    UNLOADED --load/set--> LOADED --calculate maps--> MAPS_READY

Loading new calibration always drops previously computed maps, and a failed
load leaves the store UNLOADED.
"""

import math
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, Tuple, Union

import cv2
import numpy as np

from ..exceptions import (
    ConfigurationCorrupt, ConfigurationUnavailable, DenseStereoIOError, RectificationFailed
)
from .maps import RectificationMaps
from .stereo_calibration import StereoCameraCalibration
from utils.stereo_math import StereoMath, GeometryValidator
from utils.logger_config import get_logger

CAMERA_FIELDS = ('fx', 'fy', 'cx', 'cy')
DISTORTION_FIELDS = ('d0', 'd1', 'd2', 'd3')
EXTRINSIC_FIELDS = ('tx', 'ty', 'tz', 'rx', 'ry', 'rz')

# Persisted names: camera fields carry the camera index (fx1, cx2),
# distortion fields insert it after the coefficient index (d01, d32).
SCALAR_FIELDS = (
    tuple(f"{name}1" for name in CAMERA_FIELDS)
    + tuple(f"{name}1" for name in DISTORTION_FIELDS)
    + tuple(f"{name}2" for name in CAMERA_FIELDS)
    + tuple(f"{name}2" for name in DISTORTION_FIELDS)
    + EXTRINSIC_FIELDS
)

CALIBRATION_NODE = "calibration"
DEFAULT_IMAGE_SIZE = (640, 480)


class CalibrationState(Enum):
    """Lifecycle of the calibration store"""
    UNLOADED = "unloaded"
    LOADED = "loaded"
    MAPS_READY = "maps_ready"


class CalibrationParameters:
    """
    Stores stereo calibration scalars, their derived matrices and the
    rectification maps computed from them.
    """

    def __init__(self,
                 calibration_file: Optional[Union[str, Path]] = None,
                 image_size: Tuple[int, int] = DEFAULT_IMAGE_SIZE,
                 alpha: float = 0.0):
        """
        Initialize an empty calibration store.

        Args:
            calibration_file: Persisted calibration used by load_parameters()
            image_size: (width, height) of the rectified output images
            alpha: Free scaling parameter for stereoRectify (0=crop, 1=keep all)
        """
        self.logger = get_logger(__name__)

        width, height = image_size
        if width <= 0 or height <= 0:
            raise ValueError(f"Image size must be positive, got {width}x{height}")

        self.calibration_file = Path(calibration_file) if calibration_file else None
        self.img_width = int(width)
        self.img_height = int(height)
        self.alpha = alpha

        self._scalars: Dict[str, float] = {}
        self._state = CalibrationState.UNLOADED
        self._maps: Optional[RectificationMaps] = None

        # Derived matrices
        self.camera_matrix_left: Optional[np.ndarray] = None
        self.camera_matrix_right: Optional[np.ndarray] = None
        self.dist_coeffs_left: Optional[np.ndarray] = None
        self.dist_coeffs_right: Optional[np.ndarray] = None
        self.R: Optional[np.ndarray] = None
        self.T: Optional[np.ndarray] = None
        self.Q: Optional[np.ndarray] = None

    @classmethod
    def from_config(cls, config) -> 'CalibrationParameters':
        """Create a store from a Config object."""
        return cls(
            calibration_file=getattr(config, 'calibration_file', None),
            image_size=(config.image_width, config.image_height),
            alpha=getattr(config, 'rectification_alpha', 0.0)
        )

    # ------------------------------------------------------------------
    # state

    @property
    def state(self) -> CalibrationState:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._state is not CalibrationState.UNLOADED

    @property
    def is_ready(self) -> bool:
        return self._state is CalibrationState.MAPS_READY

    @property
    def maps(self) -> Optional[RectificationMaps]:
        """Rectification maps, None unless the store is MAPS_READY"""
        return self._maps

    @property
    def image_size(self) -> Tuple[int, int]:
        return self.img_width, self.img_height

    @property
    def reprojection_matrix(self) -> np.ndarray:
        """Disparity-to-depth matrix Q of the current maps"""
        if self._maps is None:
            raise RectificationFailed(
                "Reprojection matrix requested before calculate_undistort_and_rectify_maps()"
            )
        return self._maps.Q

    def get_scalar_fields(self) -> Dict[str, float]:
        """Copy of the loaded scalar fields keyed by persisted name."""
        return dict(self._scalars)

    def _invalidate(self) -> None:
        self._scalars = {}
        self._maps = None
        self._state = CalibrationState.UNLOADED
        self.camera_matrix_left = self.camera_matrix_right = None
        self.dist_coeffs_left = self.dist_coeffs_right = None
        self.R = self.T = self.Q = None

    def _commit(self, scalars: Dict[str, float], source: str) -> None:
        self._invalidate()
        self._scalars = scalars
        self._state = CalibrationState.LOADED
        self.logger.info(f"Calibration parameters loaded from {source}")

    # ------------------------------------------------------------------
    # loading and saving

    def load_parameters(self) -> None:
        """
        Load the persisted calibration configured for this store.

        Raises:
            ConfigurationUnavailable: If no persisted calibration exists
            ConfigurationCorrupt: If the stored data is malformed or incomplete
        """
        if self.calibration_file is None:
            self._invalidate()
            raise ConfigurationUnavailable("No calibration file configured")

        path = self.calibration_file
        if not path.is_file():
            self._invalidate()
            raise ConfigurationUnavailable(f"Calibration file not found: {path}")

        try:
            storage = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
        except (cv2.error, SystemError) as e:
            # A YAML syntax error surfaces as SystemError from the binding
            self._invalidate()
            raise ConfigurationCorrupt(f"Calibration file {path} cannot be parsed: {e}") from e

        try:
            if not storage.isOpened():
                self._invalidate()
                raise ConfigurationCorrupt(f"Calibration file {path} cannot be parsed")

            node = storage.getNode(CALIBRATION_NODE)
            if node.isNone():
                node = storage.root()
            self.load_calibration_from_file(node, source=str(path))
        finally:
            storage.release()

    def load_calibration_from_file(self, calibration: cv2.FileNode, source: str = "file node") -> None:
        """
        Load calibration scalars from an OpenCV FileNode.

        Args:
            calibration: Map node holding the scalar fields
            source: Description used in log and error messages

        Raises:
            ConfigurationCorrupt: If a field is missing or not a finite number
        """
        if calibration is None or calibration.isNone() or not calibration.isMap():
            self._invalidate()
            raise ConfigurationCorrupt(f"Calibration node in {source} is missing or not a map")

        scalars = {}
        for name in SCALAR_FIELDS:
            child = calibration.getNode(name)
            if child.isNone():
                self._invalidate()
                raise ConfigurationCorrupt(
                    f"Calibration field '{name}' missing in {source}", field=name
                )
            if not (child.isReal() or child.isInt()):
                self._invalidate()
                raise ConfigurationCorrupt(
                    f"Calibration field '{name}' in {source} is not a number", field=name
                )
            scalars[name] = self._checked_value(name, child.real(), source)

        self._commit(scalars, source)

    def set_stereo_calibration_parameters(self, stereo_cam_cal: StereoCameraCalibration) -> None:
        """
        Set the calibration scalars from a calibration record.

        Args:
            stereo_cam_cal: Calibration of both cameras and their extrinsics

        Raises:
            ConfigurationCorrupt: If a value is not a finite number
        """
        scalars = {}
        for index, camera in ((1, stereo_cam_cal.cam_left), (2, stereo_cam_cal.cam_right)):
            for name in CAMERA_FIELDS + DISTORTION_FIELDS:
                key = f"{name}{index}"
                scalars[key] = self._checked_value(key, getattr(camera, name), "calibration record")

        for name in EXTRINSIC_FIELDS:
            scalars[name] = self._checked_value(
                name, getattr(stereo_cam_cal.extrinsic, name), "calibration record"
            )

        self._commit(scalars, "calibration record")

    def _checked_value(self, name: str, value, source: str) -> float:
        try:
            value = float(value)
        except (TypeError, ValueError):
            self._invalidate()
            raise ConfigurationCorrupt(
                f"Calibration field '{name}' in {source} is not a number: {value!r}", field=name
            ) from None
        if not math.isfinite(value):
            self._invalidate()
            raise ConfigurationCorrupt(
                f"Calibration field '{name}' in {source} is not finite: {value}", field=name
            )
        return value

    def save_configuration_file(self, filename: Union[str, Path]) -> Path:
        """
        Save the calibration to an OpenCV FileStorage file.

        The format follows the extension (.yml, .yaml, .xml, .json). Existing
        content is overwritten. Derived matrices are written next to the
        scalars when they are available; they are ignored on load.

        Raises:
            ConfigurationUnavailable: If no calibration is loaded
            DenseStereoIOError: If the file cannot be written
        """
        if not self.is_loaded:
            raise ConfigurationUnavailable("No calibration loaded, nothing to save")

        path = Path(filename)
        if not path.parent.is_dir():
            raise DenseStereoIOError(f"Cannot write calibration file {path}: "
                                     f"directory does not exist", path=str(path))

        try:
            storage = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
        except cv2.error as e:
            raise DenseStereoIOError(f"Cannot write calibration file {path}: {e}",
                                     path=str(path)) from e
        if not storage.isOpened():
            raise DenseStereoIOError(f"Cannot write calibration file {path}", path=str(path))

        try:
            storage.startWriteStruct(CALIBRATION_NODE, cv2.FileNode_MAP)
            for name in SCALAR_FIELDS:
                storage.write(name, float(self._scalars[name]))
            storage.endWriteStruct()

            storage.write("image_width", self.img_width)
            storage.write("image_height", self.img_height)
            if self.camera_matrix_left is not None:
                storage.write("cameraMatrix1", self.camera_matrix_left)
                storage.write("cameraMatrix2", self.camera_matrix_right)
                storage.write("distCoeffs1", self.dist_coeffs_left)
                storage.write("distCoeffs2", self.dist_coeffs_right)
                storage.write("R", self.R)
                storage.write("T", self.T)
            if self.Q is not None:
                storage.write("Q", self.Q)
        except cv2.error as e:
            raise DenseStereoIOError(f"Cannot write calibration file {path}: {e}",
                                     path=str(path)) from e
        finally:
            storage.release()

        self.logger.info(f"Saved calibration to {path}")
        return path

    # ------------------------------------------------------------------
    # rectification maps

    def _derive_matrices(self) -> None:
        s = self._scalars
        self.camera_matrix_left = StereoMath.build_camera_matrix(s['fx1'], s['fy1'], s['cx1'], s['cy1'])
        self.camera_matrix_right = StereoMath.build_camera_matrix(s['fx2'], s['fy2'], s['cx2'], s['cy2'])
        self.dist_coeffs_left = StereoMath.build_distortion_vector(
            [s['d01'], s['d11'], s['d21'], s['d31']]
        )
        self.dist_coeffs_right = StereoMath.build_distortion_vector(
            [s['d02'], s['d12'], s['d22'], s['d32']]
        )
        self.R = StereoMath.rotation_matrix_from_vector(s['rx'], s['ry'], s['rz'])
        self.T = np.array([[s['tx']], [s['ty']], [s['tz']]], dtype=np.float64)

        try:
            StereoMath.validate_camera_matrix(self.camera_matrix_left, "cameraMatrix1")
            StereoMath.validate_camera_matrix(self.camera_matrix_right, "cameraMatrix2")
            StereoMath.validate_distortion_coefficients(self.dist_coeffs_left, "distCoeffs1")
            StereoMath.validate_distortion_coefficients(self.dist_coeffs_right, "distCoeffs2")
            StereoMath.validate_rotation_matrix(self.R, "R")
            StereoMath.validate_translation_vector(self.T, "T")
        except ValueError as e:
            raise ConfigurationCorrupt(f"Invalid calibration geometry: {e}") from e

    def calculate_undistort_and_rectify_maps(self) -> RectificationMaps:
        """
        Derive the calibration matrices and compute the rectification maps.

        Must be called again after every load; the store does not detect
        stale maps on its own.

        Returns:
            RectificationMaps: The newly computed maps

        Raises:
            RectificationFailed: If no calibration is loaded or OpenCV fails
            ConfigurationCorrupt: If the loaded values describe no valid rig
        """
        if not self.is_loaded:
            raise RectificationFailed(
                "Cannot compute rectification maps: no calibration loaded"
            )

        self._maps = None
        self._state = CalibrationState.LOADED
        self._derive_matrices()
        self.validate_geometry()

        image_size = (self.img_width, self.img_height)
        try:
            R1, R2, P1, P2, Q, roi1, roi2 = cv2.stereoRectify(
                self.camera_matrix_left, self.dist_coeffs_left,
                self.camera_matrix_right, self.dist_coeffs_right,
                image_size, self.R, self.T,
                flags=cv2.CALIB_ZERO_DISPARITY,
                alpha=self.alpha
            )

            map11, map12 = cv2.initUndistortRectifyMap(
                self.camera_matrix_left, self.dist_coeffs_left,
                R1, P1, image_size, cv2.CV_32FC1
            )
            map21, map22 = cv2.initUndistortRectifyMap(
                self.camera_matrix_right, self.dist_coeffs_right,
                R2, P2, image_size, cv2.CV_32FC1
            )
        except cv2.error as e:
            raise RectificationFailed(f"Failed to compute rectification maps: {e}") from e

        self.Q = Q
        self._maps = RectificationMaps(
            left_map_x=map11, left_map_y=map12,
            right_map_x=map21, right_map_y=map22,
            left_roi=tuple(int(v) for v in roi1),
            right_roi=tuple(int(v) for v in roi2),
            image_width=self.img_width, image_height=self.img_height,
            R1=R1, R2=R2, P1=P1, P2=P2, Q=Q
        )
        self._state = CalibrationState.MAPS_READY

        baseline = StereoMath.calculate_baseline_from_projection_matrices(P1, P2)
        self.logger.info(f"Computed rectification maps for size {image_size}, alpha={self.alpha}")
        self.logger.debug(f"P1 focal length: fx={P1[0, 0]:.2f}, baseline={baseline:.4f}")

        return self._maps

    # ------------------------------------------------------------------
    # reporting

    def validate_geometry(self) -> Dict[str, Any]:
        """Collect geometry warnings for the derived matrices."""
        if self.camera_matrix_left is None:
            return {'valid': False, 'warnings': [], 'errors': ["Matrices not derived"], 'metrics': {}}
        return GeometryValidator.validate_stereo_geometry(
            self.camera_matrix_left, self.camera_matrix_right, self.R, self.T, self.image_size
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the store for metadata files."""
        data = {
            'state': self._state.value,
            'calibration_file': str(self.calibration_file) if self.calibration_file else None,
            'image_width': self.img_width,
            'image_height': self.img_height,
            'alpha': self.alpha,
            'scalars': dict(self._scalars),
        }
        if self.Q is not None:
            data['Q'] = self.Q.tolist()
        return data

    def get_calibration_summary(self) -> Dict[str, Any]:
        """Get summary of calibration parameters"""
        if not self.is_loaded:
            return {"state": self._state.value}

        s = self._scalars
        return {
            "state": self._state.value,
            "baseline": float(np.linalg.norm([s['tx'], s['ty'], s['tz']])),
            "image_size": f"{self.img_width}x{self.img_height}",
            "left_focal_length": s['fx1'],
            "right_focal_length": s['fx2'],
            "has_maps": self._maps is not None,
            "left_roi": self._maps.left_roi if self._maps else None,
            "right_roi": self._maps.right_roi if self._maps else None,
        }
