"""
Stereo vision mathematical utilities.

This module provides the matrix construction and validation helpers used to
turn scalar calibration fields into the matrices consumed by OpenCV, and to
read geometric quantities back out of rectification results.
"""

import cv2
import numpy as np
import logging
from typing import Tuple, Dict, Any, Sequence

logger = logging.getLogger(__name__)


class StereoMath:
    """Mathematical utilities for stereo vision calculations."""

    @staticmethod
    def build_camera_matrix(fx: float, fy: float, cx: float, cy: float) -> np.ndarray:
        """
        Build a pinhole camera intrinsic matrix.

        Args:
            fx, fy: Focal lengths in pixels
            cx, cy: Principal point in pixels

        Returns:
            np.ndarray: 3x3 camera matrix
        """
        return np.array([
            [fx, 0.0, cx],
            [0.0, fy, cy],
            [0.0, 0.0, 1.0]
        ], dtype=np.float64)

    @staticmethod
    def build_distortion_vector(coefficients: Sequence[float]) -> np.ndarray:
        """Build a float64 distortion vector (k1, k2, p1, p2)."""
        return np.asarray(coefficients, dtype=np.float64).reshape(-1)

    @staticmethod
    def rotation_matrix_from_vector(rx: float, ry: float, rz: float) -> np.ndarray:
        """
        Convert an axis-angle rotation vector to a rotation matrix.

        Args:
            rx, ry, rz: Rodrigues rotation vector components (radians)

        Returns:
            np.ndarray: 3x3 rotation matrix
        """
        rotation_vector = np.array([[rx], [ry], [rz]], dtype=np.float64)
        R, _ = cv2.Rodrigues(rotation_vector)
        return R

    @staticmethod
    def validate_camera_matrix(K: np.ndarray, matrix_name: str = "K") -> bool:
        """
        Validate camera intrinsic matrix.

        Args:
            K: 3x3 camera matrix
            matrix_name: Name for error messages

        Returns:
            bool: True if valid

        Raises:
            ValueError: If matrix is invalid
        """
        if K.shape != (3, 3):
            raise ValueError(f"{matrix_name} must be 3x3, got {K.shape}")

        fx, fy = K[0, 0], K[1, 1]
        if fx <= 0 or fy <= 0:
            raise ValueError(f"{matrix_name} focal lengths must be positive: fx={fx}, fy={fy}")

        if not np.allclose(K[2, :], [0, 0, 1]):
            raise ValueError(f"{matrix_name} bottom row must be [0, 0, 1]")

        return True

    @staticmethod
    def validate_distortion_coefficients(d: np.ndarray, coeff_name: str = "d") -> bool:
        """Check a 1-D distortion vector for non-finite values."""
        if d.ndim != 1:
            raise ValueError(f"{coeff_name} must be 1D array, got shape {d.shape}")

        if len(d) not in [4, 5, 8, 12, 14]:
            logger.warning(f"{coeff_name} has unusual length {len(d)}, "
                           f"expected 4, 5, 8, 12, or 14")

        if np.any(np.isnan(d)) or np.any(np.isinf(d)):
            raise ValueError(f"{coeff_name} contains NaN or infinite values")

        return True

    @staticmethod
    def validate_rotation_matrix(R: np.ndarray, matrix_name: str = "R") -> bool:
        """Raise ValueError unless R is a proper 3x3 rotation."""
        if R.shape != (3, 3):
            raise ValueError(f"{matrix_name} must be 3x3, got {R.shape}")

        identity_check = R @ R.T
        if not np.allclose(identity_check, np.eye(3), atol=1e-6):
            raise ValueError(f"{matrix_name} is not orthogonal")

        det = np.linalg.det(R)
        if not np.isclose(det, 1.0, atol=1e-6):
            raise ValueError(f"{matrix_name} determinant must be 1, got {det}")

        return True

    @staticmethod
    def validate_translation_vector(T: np.ndarray, vector_name: str = "T") -> bool:
        """Raise ValueError for a malformed or zero-length baseline vector."""
        if T.shape not in [(3,), (3, 1)]:
            raise ValueError(f"{vector_name} must have shape (3,) or (3,1), got {T.shape}")

        if np.any(np.isnan(T)) or np.any(np.isinf(T)):
            raise ValueError(f"{vector_name} contains NaN or infinite values")

        baseline = np.linalg.norm(T)
        if baseline < 1e-6:
            raise ValueError(f"{vector_name} baseline is zero, cameras coincide")

        return True

    @staticmethod
    def calculate_baseline_from_projection_matrices(
        P1: np.ndarray,
        P2: np.ndarray
    ) -> float:
        """
        Calculate baseline from rectified projection matrices.

        Args:
            P1: Left camera projection matrix
            P2: Right camera projection matrix

        Returns:
            float: Baseline distance
        """
        # Horizontal rig: P2[0,3] = -fx * baseline
        baseline = abs(P2[0, 3] / P2[0, 0])

        if baseline < 1e-6:
            logger.warning(f"Very small baseline detected: {baseline}")

        return baseline

    @staticmethod
    def projective_parameters_from_q(Q: np.ndarray) -> Tuple[float, float, float, float]:
        """
        Extract pinhole scale and centre offsets from a reprojection matrix.

        For the OpenCV convention Q = [[1,0,0,-cx],[0,1,0,-cy],[0,0,0,f],...],
        a pixel u maps to the projective plane as u/f - cx/f.

        Returns:
            (scale_x, scale_y, center_x, center_y)
        """
        if Q.shape != (4, 4):
            raise ValueError(f"Q must be 4x4, got {Q.shape}")

        focal_length = Q[2, 3]
        if abs(focal_length) < 1e-12:
            raise ValueError("Q matrix has zero focal length")

        scale = 1.0 / focal_length
        return scale, scale, Q[0, 3] / focal_length, Q[1, 3] / focal_length


class GeometryValidator:
    """Validates geometric consistency in stereo vision setups."""

    @staticmethod
    def validate_stereo_geometry(
        K_left: np.ndarray,
        K_right: np.ndarray,
        R: np.ndarray,
        T: np.ndarray,
        image_size: Tuple[int, int]
    ) -> Dict[str, Any]:
        """
        Validation of stereo geometry that collects warnings instead of raising.

        Args:
            K_left: Left camera matrix
            K_right: Right camera matrix
            R: Rotation matrix between cameras
            T: Translation vector between cameras
            image_size: (width, height) of images

        Returns:
            Dict[str, Any]: Validation results and metrics
        """
        results = {
            'valid': True,
            'warnings': [],
            'errors': [],
            'metrics': {}
        }

        try:
            StereoMath.validate_camera_matrix(K_left, "K_left")
            StereoMath.validate_camera_matrix(K_right, "K_right")
            StereoMath.validate_rotation_matrix(R, "R")
            StereoMath.validate_translation_vector(T, "T")

            baseline = float(np.linalg.norm(T))
            results['metrics']['baseline'] = baseline

            fx_left, fy_left = K_left[0, 0], K_left[1, 1]
            fx_right, fy_right = K_right[0, 0], K_right[1, 1]

            focal_diff = float(max(abs(fx_left - fx_right), abs(fy_left - fy_right)))
            results['metrics']['focal_length_difference'] = focal_diff

            if focal_diff > 10:  # pixels
                results['warnings'].append(f"Large focal length difference: {focal_diff:.2f} pixels")

            cx_left, cy_left = K_left[0, 2], K_left[1, 2]
            cx_right, cy_right = K_right[0, 2], K_right[1, 2]

            width, height = image_size

            if not (0 <= cx_left <= width and 0 <= cx_right <= width):
                results['warnings'].append("Principal points outside image width bounds")

            if not (0 <= cy_left <= height and 0 <= cy_right <= height):
                results['warnings'].append("Principal points outside image height bounds")

        except ValueError as e:
            results['valid'] = False
            results['errors'].append(str(e))

        for warning in results['warnings']:
            logger.warning(warning)

        return results
