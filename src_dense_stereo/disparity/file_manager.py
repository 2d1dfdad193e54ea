"""
File management utilities for disparity processing.

Writes the optional raw disparity arrays, optional colour charts and the
per-pair metadata file.
"""

from pathlib import Path
from typing import Dict, Any, Optional

import numpy as np

from utils.file_operations import DataSaver
from utils.image import ImageChartGenerator
from ..base import BaseFileManager


class DisparityFileManager(BaseFileManager):
    """Manages file operations for disparity processing."""

    FOLDER_NAME = "disparity"

    def __init__(self, base_output_path: Path):
        super().__init__(base_output_path)

    def get_folder_name(self) -> str:
        return self.FOLDER_NAME

    def save_raw_disparity(
        self,
        disparity_left: np.ndarray,
        disparity_right: np.ndarray,
        output_path: Path,
        pair_name: str
    ) -> Dict[str, bool]:
        """Save the float disparity fields as ``.npy`` arrays."""
        results = {}
        for side, disparity in (('left', disparity_left), ('right', disparity_right)):
            filename = f'disparity_raw_{side}_{pair_name}'
            success = DataSaver.save_numpy_array(disparity, output_path, filename)
            results[f'{side}_npy'] = self.record(f"{filename}.npy", success)
        return results

    def save_disparity_visualization(
        self,
        disparity: np.ndarray,
        output_path: Path,
        pair_name: str,
        visualization_params: Optional[Dict[str, Any]] = None,
        need_show: bool = False
    ) -> bool:
        """
        Save a colour chart of a raw disparity field.

        Args:
            disparity: Raw disparity, negative where invalid
            output_path: Output directory path
            pair_name: Name of the image pair
            visualization_params: Optional 'min_display', 'max_display' and
                'target_disparity'
            need_show: Whether to show the chart as well
        """
        params = visualization_params or {}
        try:
            painter = ImageChartGenerator(
                img=disparity.astype(np.float32),
                xlabel="pixel",
                ylabel="pixel",
                save_path_result=str(output_path),
                need_show=need_show,
                range_max=params.get('max_display'),
                range_min=params.get('min_display')
            )
            painter.create_disparity(params.get('target_disparity'),
                                     photo_name=f"disparity_{pair_name}")
            success = True
        except (OSError, ValueError) as e:
            self.logger.error(f"Failed to save disparity visualization: {e}")
            success = False

        return self.record(f"disparity_{pair_name}.jpg", success)

    def save_disparity_metadata(self, metadata: Dict[str, Any], output_path: Path,
                                pair_name: str) -> bool:
        return self.save_metadata(metadata, output_path, pair_name, "disparity_metadata")
