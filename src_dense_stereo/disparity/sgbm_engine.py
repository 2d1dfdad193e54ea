"""
SGBM (Semi-Global Block Matching) engine for stereo disparity calculation.

Implements the StereoMatcher interface on top of ``cv2.StereoSGBM`` and maps
the libelas parameter set onto it. Both a left-reference and a
right-reference disparity field are produced; the right-reference field is
computed by matching the horizontally mirrored pair.
"""

import math
from typing import Dict, Any, Optional, Tuple

import cv2
import numpy as np

from ..exceptions import MatcherFailure
from .matcher import StereoMatcher, MatcherConfiguration
from utils.logger_config import get_logger

INVALID_DISPARITY = -1.0
DISPARITY_SCALE = 16.0  # SGBM returns fixed point with 4 fractional bits

# libelas parameters without an SGBM counterpart
_UNMAPPED_PARAMETERS = (
    'support_texture', 'candidate_stepsize', 'incon_window_size', 'incon_threshold',
    'incon_min_support', 'add_corners', 'grid_size', 'beta', 'gamma', 'sigma', 'sradius',
    'match_texture', 'ipol_gap_width', 'filter_adaptive_mean'
)


class SGBMEngine(StereoMatcher):
    """Core SGBM algorithm engine for stereo disparity calculation."""

    def __init__(self,
                 matcher_config: Optional[MatcherConfiguration] = None,
                 block_size: int = 5,
                 use_fast_mode: bool = True):
        """
        Initialize SGBM engine with configuration.

        Args:
            matcher_config: Matcher parameters (libelas naming)
            block_size: Block size for matching (must be odd)
            use_fast_mode: Whether to use SGBM_3WAY mode for speed
        """
        self.matcher_config = matcher_config or MatcherConfiguration()
        self.logger = get_logger(__name__)

        # SGBM parameters
        self.sgbm_mode = None
        self.min_disparity = None
        self.num_disparities = None
        self.block_size = None
        self.p1 = None
        self.p2 = None
        self.disp12_max_diff = None
        self.uniqueness_ratio = None
        self.speckle_window_size = None
        self.speckle_range = None

        # Stereo matcher instances, one per reference camera
        self._left_matcher = None
        self._right_matcher = None

        self.configure_parameters(block_size, use_fast_mode)

    def configure_parameters(self, block_size: int, use_fast_mode: bool = True) -> None:
        """
        Derive SGBM parameters from the matcher configuration.

        Raises:
            ValueError: If the derived parameters are invalid
        """
        cfg = self.matcher_config
        disp_min, disp_max = cfg.disp_min, cfg.disp_max
        if cfg.subsampling:
            disp_min, disp_max = disp_min // 2, disp_max // 2

        num_disparities = int(math.ceil((disp_max - disp_min + 1) / 16.0)) * 16
        self._validate_sgbm_parameters(disp_min, num_disparities, block_size)

        self.min_disparity = disp_min
        self.num_disparities = num_disparities
        self.block_size = block_size

        self.sgbm_mode = (cv2.STEREO_SGBM_MODE_SGBM_3WAY if use_fast_mode
                          else cv2.STEREO_SGBM_MODE_SGBM)

        # Single channel input
        self.p1 = 8 * block_size * block_size
        self.p2 = 32 * block_size * block_size

        self.disp12_max_diff = int(cfg.lr_threshold) if cfg.lr_threshold >= 0 else -1
        self.uniqueness_ratio = int(round((1.0 - cfg.support_threshold) * 100))
        self.speckle_window_size = max(int(cfg.speckle_size), 0)
        self.speckle_range = max(int(round(cfg.speckle_sim_threshold)), 1)

        self._left_matcher = None
        self._right_matcher = None

        self.logger.info(f"SGBM parameters configured: "
                         f"minDisp={self.min_disparity}, numDisp={self.num_disparities}, "
                         f"blockSize={block_size}, mode={'3WAY' if use_fast_mode else 'SGBM'}")
        self.logger.debug(f"libelas parameters without SGBM equivalent ignored: "
                          f"{', '.join(_UNMAPPED_PARAMETERS)}")

    def _validate_sgbm_parameters(self, min_disparity: int, num_disparities: int,
                                  block_size: int) -> None:
        if num_disparities <= 0 or num_disparities % 16 != 0:
            raise ValueError(f"num_disparities must be positive and divisible by 16, got {num_disparities}")

        if block_size <= 0 or block_size % 2 == 0:
            raise ValueError(f"block_size must be positive and odd, got {block_size}")

        if min_disparity < 0:
            raise ValueError(f"min_disparity must be non-negative, got {min_disparity}")

        if block_size > 21:
            self.logger.warning(f"Large block_size ({block_size}) may reduce accuracy")

    def create_stereo_matcher(self, speckle_filtering: bool = True) -> cv2.StereoSGBM:
        """
        Create and configure an OpenCV StereoSGBM matcher.

        Args:
            speckle_filtering: Whether the matcher removes small speckles

        Returns:
            cv2.StereoSGBM: Configured stereo matcher
        """
        stereo = cv2.StereoSGBM_create(
            disp12MaxDiff=self.disp12_max_diff,
            mode=self.sgbm_mode
        )

        stereo.setMinDisparity(self.min_disparity)
        stereo.setNumDisparities(self.num_disparities)
        stereo.setBlockSize(self.block_size)
        stereo.setP1(self.p1)
        stereo.setP2(self.p2)
        stereo.setUniquenessRatio(self.uniqueness_ratio)
        if speckle_filtering:
            stereo.setSpeckleRange(self.speckle_range)
            stereo.setSpeckleWindowSize(self.speckle_window_size)
        else:
            stereo.setSpeckleRange(0)
            stereo.setSpeckleWindowSize(0)

        return stereo

    def _matchers(self) -> Tuple[cv2.StereoSGBM, cv2.StereoSGBM]:
        if self._left_matcher is None:
            self._left_matcher = self.create_stereo_matcher(speckle_filtering=True)
            self._right_matcher = self.create_stereo_matcher(
                speckle_filtering=not self.matcher_config.postprocess_only_left
            )
            self.logger.debug("StereoSGBM matchers created")
        return self._left_matcher, self._right_matcher

    def match(self, left: np.ndarray, right: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute left- and right-reference disparity for a rectified pair.

        Raises:
            MatcherFailure: If the inputs are unusable or OpenCV fails
        """
        self._validate_stereo_images(left, right)
        height, width = left.shape
        left_matcher, right_matcher = self._matchers()

        if self.matcher_config.subsampling:
            half_size = (max(width // 2, 1), max(height // 2, 1))
            left_in = cv2.resize(left, half_size, interpolation=cv2.INTER_AREA)
            right_in = cv2.resize(right, half_size, interpolation=cv2.INTER_AREA)
        else:
            left_in, right_in = left, right

        try:
            disp_left = self._compute(left_matcher, left_in, right_in)
            # Mirroring turns the right-reference search into a left-reference one
            disp_right = np.ascontiguousarray(np.fliplr(self._compute(
                right_matcher,
                np.ascontiguousarray(np.fliplr(right_in)),
                np.ascontiguousarray(np.fliplr(left_in))
            )))

            if self.matcher_config.subsampling:
                disp_left = self._upsample(disp_left, (width, height))
                disp_right = self._upsample(disp_right, (width, height))

            if self.matcher_config.filter_median:
                disp_left = cv2.medianBlur(disp_left, 3)
                disp_right = cv2.medianBlur(disp_right, 3)
        except cv2.error as e:
            raise MatcherFailure(f"SGBM matching failed: {e}") from e

        self._log_statistics(disp_left)
        return disp_left, disp_right

    def _compute(self, matcher: cv2.StereoSGBM, left: np.ndarray, right: np.ndarray) -> np.ndarray:
        raw = matcher.compute(left, right)
        disparity = raw.astype(np.float32) / DISPARITY_SCALE
        disparity[raw < self.min_disparity * DISPARITY_SCALE] = INVALID_DISPARITY
        return disparity

    @staticmethod
    def _upsample(disparity: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
        upsampled = cv2.resize(disparity, size, interpolation=cv2.INTER_NEAREST)
        valid = upsampled >= 0
        upsampled[valid] *= 2.0
        return upsampled

    def _validate_stereo_images(self, left_image: np.ndarray, right_image: np.ndarray) -> None:
        if left_image is None or right_image is None:
            raise MatcherFailure("Input images cannot be None")

        if left_image.shape != right_image.shape:
            raise MatcherFailure(f"Image shapes don't match: "
                                 f"left={left_image.shape}, right={right_image.shape}")

        if left_image.ndim != 2 or left_image.dtype != np.uint8 or right_image.dtype != np.uint8:
            raise MatcherFailure(f"SGBM requires single channel uint8 images, got "
                                 f"{left_image.dtype} {left_image.shape}")

    def _log_statistics(self, disparity: np.ndarray) -> None:
        valid_disparity = disparity[disparity >= 0]
        if len(valid_disparity) > 0:
            self.logger.debug(f"Disparity computed: "
                              f"valid_pixels={len(valid_disparity)}/{disparity.size} "
                              f"({100 * len(valid_disparity) / disparity.size:.1f}%), "
                              f"range=[{valid_disparity.min():.1f}, {valid_disparity.max():.1f}]")
        else:
            self.logger.warning("No valid disparity values computed")

    def get_configuration_info(self) -> Dict[str, Any]:
        """
        Get current SGBM configuration information.

        Returns:
            Dict[str, Any]: Configuration information
        """
        return {
            'configured': self.min_disparity is not None,
            'parameters': {
                'min_disparity': self.min_disparity,
                'num_disparities': self.num_disparities,
                'block_size': self.block_size,
                'sgbm_mode': 'SGBM_3WAY' if self.sgbm_mode == cv2.STEREO_SGBM_MODE_SGBM_3WAY else 'SGBM',
                'p1': self.p1,
                'p2': self.p2,
                'disp12_max_diff': self.disp12_max_diff,
                'uniqueness_ratio': self.uniqueness_ratio,
                'speckle_window_size': self.speckle_window_size,
                'speckle_range': self.speckle_range
            },
            'matcher_configuration': self.matcher_config.to_dict()
        }
