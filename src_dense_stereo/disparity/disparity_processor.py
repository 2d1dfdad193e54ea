"""
Disparity map processing utilities.

This module handles post-processing of raw disparity fields: the scaling to
8-bit images for display, colour mapping, and quality assessment.
"""

from typing import Dict, Any, Optional, Tuple

import cv2
import numpy as np

from ..exceptions import DimensionMismatch
from utils.logger_config import get_logger

logger = get_logger(__name__)


class DisparityProcessor:
    """Handles post-processing and analysis of disparity maps."""

    def __init__(self):
        self.logger = get_logger(__name__)

    @staticmethod
    def max_disparity(*fields: np.ndarray) -> float:
        """
        Largest value over all given fields, NaN ignored.

        Returns 0.0 when no field holds a finite value.
        """
        maxima = [np.nanmax(f) for f in fields if f.size and not np.all(np.isnan(f))]
        if not maxima:
            return 0.0
        return float(max(maxima))

    @staticmethod
    def normalize_to_u8(disparity: np.ndarray, max_value: float) -> np.ndarray:
        """
        Scale a raw disparity field to 0..255.

        Each sample becomes clamp(255 * d / max_value, 0, 255) truncated to
        uint8. Negative (invalid) and NaN samples map to 0; a non-positive
        max_value yields an all-zero image.
        """
        if max_value <= 0 or not np.isfinite(max_value):
            return np.zeros(disparity.shape, dtype=np.uint8)

        # float64 keeps 255 * M / M exact for float32 inputs
        scaled = disparity.astype(np.float64) * 255.0 / max_value
        scaled = np.nan_to_num(scaled, nan=0.0, posinf=255.0, neginf=0.0)
        return np.clip(scaled, 0.0, 255.0).astype(np.uint8)

    def normalize_pair(
        self,
        disparity_left: np.ndarray,
        disparity_right: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Normalize both disparity fields against their common maximum.

        Raises:
            DimensionMismatch: If the fields differ in shape
        """
        if disparity_left.shape != disparity_right.shape:
            raise DimensionMismatch(
                f"Disparity fields differ in size: left={disparity_left.shape}, "
                f"right={disparity_right.shape}",
                expected=disparity_left.shape[::-1], actual=disparity_right.shape[::-1]
            )

        max_value = self.max_disparity(disparity_left, disparity_right)
        self.logger.debug(f"Normalizing disparity pair with max={max_value:.3f}")
        return (self.normalize_to_u8(disparity_left, max_value),
                self.normalize_to_u8(disparity_right, max_value))

    def create_disparity_colormap(
        self,
        disparity: np.ndarray,
        colormap: int = cv2.COLORMAP_JET
    ) -> np.ndarray:
        """
        Create color-mapped disparity image for visualization.

        Args:
            disparity: Raw or normalized disparity map
            colormap: OpenCV colormap type

        Returns:
            np.ndarray: Color-mapped disparity image (BGR format)
        """
        if disparity.dtype != np.uint8:
            disparity = self.normalize_to_u8(disparity, self.max_disparity(disparity))
        return cv2.applyColorMap(disparity, colormap)

    def assess_disparity_quality(self, disparity: np.ndarray) -> Dict[str, Any]:
        """
        Assess the quality of a raw disparity map.

        Args:
            disparity: Raw disparity map, negative or NaN where invalid

        Returns:
            Dict[str, Any]: Quality assessment metrics
        """
        valid_mask = np.isfinite(disparity) & (disparity >= 0)
        total_pixels = disparity.size
        valid_pixels = int(np.sum(valid_mask))

        quality_metrics = {
            'total_pixels': int(total_pixels),
            'valid_pixels': valid_pixels,
            'validity_ratio': float(valid_pixels / total_pixels) if total_pixels else 0.0,
            'coverage_percentage': float(100 * valid_pixels / total_pixels) if total_pixels else 0.0
        }

        if valid_pixels > 0:
            valid_disparity = disparity[valid_mask]

            quality_metrics.update({
                'disparity_range': {
                    'min': float(valid_disparity.min()),
                    'max': float(valid_disparity.max()),
                    'mean': float(valid_disparity.mean()),
                    'std': float(valid_disparity.std())
                },
                'dynamic_range': float(valid_disparity.max() - valid_disparity.min())
            })

            if quality_metrics['validity_ratio'] > 0.8:
                quality_level = 'excellent'
            elif quality_metrics['validity_ratio'] > 0.6:
                quality_level = 'good'
            elif quality_metrics['validity_ratio'] > 0.4:
                quality_level = 'fair'
            else:
                quality_level = 'poor'

            quality_metrics['quality_level'] = quality_level
        else:
            quality_metrics.update({
                'disparity_range': None,
                'dynamic_range': 0.0,
                'quality_level': 'failed'
            })

        self.logger.info(f"Disparity quality assessment: "
                         f"{quality_metrics['quality_level']} "
                         f"({quality_metrics['coverage_percentage']:.1f}% coverage)")

        return quality_metrics

    def create_disparity_metadata(
        self,
        disparity: np.ndarray,
        parameters: Dict[str, Any],
        quality_metrics: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Bundle shape, matcher parameters and quality metrics of a result."""
        return {
            'disparity_info': {
                'shape': list(disparity.shape),
                'dtype': str(disparity.dtype),
                'max_disparity': self.max_disparity(disparity)
            },
            'matcher_parameters': parameters,
            'quality_metrics': quality_metrics or self.assess_disparity_quality(disparity)
        }
