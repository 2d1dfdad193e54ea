"""
Dense stereo pipeline.

Rectifies a raw left/right frame pair with the calibration store's maps,
hands the grayscale pair to a stereo matcher and turns the raw disparity
into 8-bit images for display or into a metric distance image.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from .calibration.parameters import CalibrationParameters, CalibrationState
from .disparity.disparity_processor import DisparityProcessor
from .disparity.matcher import StereoMatcher, MatcherConfiguration
from .disparity.sgbm_engine import SGBMEngine
from .distance.distance_image import DistanceImage
from .exceptions import DimensionMismatch, MatcherFailure
from .image_buffer import ImageBuffer
from .image_io import load_pgm, save_pgm, to_grayscale_buffer
from .rectification.stage import RectificationStage
from utils.file_operations import PathManager
from utils.image_processing import ImageProcessor
from utils.logger_config import get_logger

Frame = Union[np.ndarray, ImageBuffer]
DISPARITY_SUFFIX = "_disp"


def _frame_size(frame: Frame) -> Tuple[int, int]:
    if isinstance(frame, ImageBuffer):
        return frame.size
    if frame is None or frame.ndim not in (2, 3):
        raise DimensionMismatch(f"Frame must be a 2D image, got "
                                f"{None if frame is None else frame.shape}")
    return frame.shape[1], frame.shape[0]


class DenseStereo:
    """
    Main dense stereo coordinator.

    The calibration store is shared by all calls of one pipeline instance;
    reloading it while a call runs is not supported.
    """

    def __init__(self,
                 calibration: CalibrationParameters,
                 matcher: Optional[StereoMatcher] = None,
                 disparity_processor: Optional[DisparityProcessor] = None):
        """
        Args:
            calibration: Calibration store providing rectification maps
            matcher: Dense matcher, SGBM with default parameters if omitted
            disparity_processor: Post-processing of raw disparity
        """
        self.logger = get_logger(__name__)
        self.calibration = calibration
        self.matcher = matcher or SGBMEngine()
        self.disparity_processor = disparity_processor or DisparityProcessor()
        self.rectification_stage = RectificationStage(calibration)

    @classmethod
    def from_config(cls, config) -> 'DenseStereo':
        """Build calibration store and SGBM matcher from a Config object."""
        calibration = CalibrationParameters.from_config(config)
        matcher_config = MatcherConfiguration.from_dict(getattr(config, 'matcher', {}))
        matcher = SGBMEngine(matcher_config, block_size=getattr(config, 'block_size', 5))
        return cls(calibration, matcher)

    # ------------------------------------------------------------------
    # calibration and rectification

    def ensure_rectification_maps(self) -> None:
        """
        Make the calibration store MAPS_READY, loading the persisted
        calibration first when nothing is loaded.

        Raises:
            ConfigurationUnavailable, ConfigurationCorrupt: From loading
            RectificationFailed: From map computation
        """
        state = self.calibration.state
        if state is CalibrationState.MAPS_READY:
            return
        if state is CalibrationState.UNLOADED:
            self.logger.info("No calibration loaded, loading persisted parameters")
            self.calibration.load_parameters()
        self.calibration.calculate_undistort_and_rectify_maps()

    def rectify(self, image: Frame, is_right_camera: bool) -> np.ndarray:
        """Rectify one frame of the left or right camera."""
        self.ensure_rectification_maps()
        return self.rectification_stage.rectify(image, is_right_camera)

    @staticmethod
    def rotate_image(source: np.ndarray, angle: float) -> np.ndarray:
        """Rotate an image about its centre by ``angle`` degrees."""
        return ImageProcessor.rotate_image(source, angle)

    # ------------------------------------------------------------------
    # disparity

    @staticmethod
    def _check_same_size(left: Frame, right: Frame) -> Tuple[int, int]:
        left_size, right_size = _frame_size(left), _frame_size(right)
        if left_size != right_size or min(left_size) <= 0:
            raise DimensionMismatch(
                f"Images must be of same size, but I1: {left_size[0]} x {left_size[1]}, "
                f"I2: {right_size[0]} x {right_size[1]}",
                expected=left_size, actual=right_size
            )
        return left_size

    def _prepare_pair(self, left: Frame, right: Frame,
                      rectify: bool) -> Tuple[ImageBuffer, ImageBuffer]:
        self._check_same_size(left, right)
        if rectify:
            self.ensure_rectification_maps()
            left_gray = self.rectification_stage.rectify_grayscale(left, False)
            right_gray = self.rectification_stage.rectify_grayscale(right, True)
        else:
            left_gray = to_grayscale_buffer(left.access if isinstance(left, ImageBuffer) else left)
            right_gray = to_grayscale_buffer(right.access if isinstance(right, ImageBuffer) else right)

        self._check_same_size(left_gray, right_gray)
        return left_gray, right_gray

    def _match(self, left: ImageBuffer, right: ImageBuffer) -> Tuple[np.ndarray, np.ndarray]:
        expected_shape = (left.height, left.width)
        try:
            disparity_left, disparity_right = self.matcher.match(left.access, right.access)
        finally:
            left.release()
            right.release()

        for name, disparity in (("left", disparity_left), ("right", disparity_right)):
            if not isinstance(disparity, np.ndarray) or disparity.shape != expected_shape:
                raise MatcherFailure(
                    f"Matcher returned {name} disparity of shape "
                    f"{getattr(disparity, 'shape', None)}, expected {expected_shape}"
                )
        return (disparity_left.astype(np.float32, copy=False),
                disparity_right.astype(np.float32, copy=False))

    def compute_raw_disparity(self, left: Frame, right: Frame,
                              rectify: bool = True) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute float disparity for a frame pair.

        Returns:
            (left_disparity, right_disparity): float32 arrays, negative where
            the matcher found no correspondence

        Raises:
            DimensionMismatch: If the frames differ in size
            UnsupportedImageFormat: If a frame cannot be made 8-bit grayscale
            RectificationFailed: If rectification is impossible
            MatcherFailure: If the matcher fails
        """
        left_gray, right_gray = self._prepare_pair(left, right, rectify)
        return self._match(left_gray, right_gray)

    def normalize_disparity(self, disparity_left: np.ndarray,
                            disparity_right: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Scale both fields by 255 / common maximum into uint8 images."""
        return self.disparity_processor.normalize_pair(disparity_left, disparity_right)

    def process_frame_pair(self, left_frame: Frame,
                           right_frame: Frame) -> Tuple[np.ndarray, np.ndarray]:
        """
        Rectify a raw frame pair and compute 8-bit disparity images.

        Args:
            left_frame: Left camera image (uint8/uint16, 1 or 3 channels)
            right_frame: Right camera image, same size as the left one

        Returns:
            (left_output, right_output): uint8 disparity images of the
            rectified size
        """
        disparity_left, disparity_right = self.compute_raw_disparity(left_frame, right_frame)
        left_output, right_output = self.normalize_disparity(disparity_left, disparity_right)
        self.logger.debug(f"Processed frame pair {left_output.shape[1]}x{left_output.shape[0]}")
        return left_output, right_output

    def compute_distance_image(self, left_frame: Frame, right_frame: Frame,
                               time: Optional[datetime] = None) -> DistanceImage:
        """
        Rectify a frame pair and convert the left disparity to distances.

        Args:
            left_frame: Left camera image
            right_frame: Right camera image
            time: Capture time stored in the result, now if omitted
        """
        disparity_left, _ = self.compute_raw_disparity(left_frame, right_frame, rectify=True)
        return DistanceImage.from_disparity(disparity_left, self.calibration.reprojection_matrix,
                                            time=time)

    # ------------------------------------------------------------------
    # files

    @staticmethod
    def disparity_output_path(path: Union[str, Path]) -> Path:
        """``dir/name.pgm`` -> ``dir/name_disp.pgm``"""
        return PathManager.derived_path(path, DISPARITY_SUFFIX, ".pgm")

    def load_image_pair(self, path_a: Union[str, Path],
                        path_b: Union[str, Path]) -> Tuple[ImageBuffer, ImageBuffer]:
        """
        Load two PGM files that must have the same size.

        Raises:
            DenseStereoIOError: If a file cannot be read
            DimensionMismatch: If the images differ in size
        """
        image_a = load_pgm(path_a)
        image_b = load_pgm(path_b)
        self._check_same_size(image_a, image_b)
        return image_a, image_b

    def process_image_files(self, path_a: Union[str, Path], path_b: Union[str, Path],
                            rectify: bool = True) -> Tuple[Path, Path]:
        """
        Compute disparity for two PGM files and write ``<name>_disp.pgm``
        next to each input.

        Returns:
            (output_a, output_b): Paths of the written disparity images
        """
        self.logger.info(f"Processing: {path_a}, {path_b}")
        image_a, image_b = self.load_image_pair(path_a, path_b)

        disparity_a, disparity_b = self.compute_raw_disparity(image_a, image_b, rectify=rectify)
        output_a, output_b = self.normalize_disparity(disparity_a, disparity_b)

        target_a = save_pgm(output_a, self.disparity_output_path(path_a))
        target_b = save_pgm(output_b, self.disparity_output_path(path_b))
        self.logger.info(f"Saved disparity images {target_a.name}, {target_b.name}")
        return target_a, target_b
