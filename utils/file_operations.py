"""
File operation utilities for the dense stereo pipeline.

This module provides path management and structured data saving that are
shared by the file managers and the command line entry point.
"""

import json
import numpy as np
import logging
from typing import Dict, Any, Union
from pathlib import Path

logger = logging.getLogger(__name__)


class PathManager:
    """Manages paths and directory operations for stereo outputs."""

    @staticmethod
    def ensure_directory_exists(path: Path) -> Path:
        """
        Ensure directory exists.

        Args:
            path: Directory path to create

        Returns:
            Path: The created/validated directory path
        """
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Ensured directory exists: {path}")

        return path

    @staticmethod
    def derived_path(source: Union[str, Path], suffix: str, extension: str) -> Path:
        """
        Path next to ``source`` with its extension replaced.

        ``derived_path("a/left.pgm", "_disp", ".pgm")`` gives ``a/left_disp.pgm``.
        """
        source = Path(source)
        return source.with_name(f"{source.stem}{suffix}{extension}")

    @staticmethod
    def pair_name(left_path: Union[str, Path], right_path: Union[str, Path]) -> str:
        """Name identifying an image pair in output folders."""
        left_stem, right_stem = Path(left_path).stem, Path(right_path).stem
        for prefix in ('left_', 'right_'):
            if left_stem.startswith(prefix):
                left_stem = left_stem[len(prefix):]
            if right_stem.startswith(prefix):
                right_stem = right_stem[len(prefix):]
        if left_stem == right_stem:
            return left_stem
        return f"{left_stem}__{right_stem}"


class DataSaver:
    """Handles saving of various data types in standard formats."""

    @staticmethod
    def save_numpy_array(
        array: np.ndarray,
        output_path: Path,
        filename: str
    ) -> bool:
        """
        Save numpy array in binary ``.npy`` format.

        Args:
            array: Numpy array to save
            output_path: Output directory
            filename: Output filename (without extension)

        Returns:
            bool: True if successful
        """
        try:
            output_path.mkdir(parents=True, exist_ok=True)

            full_path = output_path / f"{filename}.npy"
            np.save(full_path, array)

            logger.debug(f"Saved array to {full_path}")
            return True

        except (OSError, ValueError) as e:
            logger.error(f"Failed to save array {filename}: {e}")
            return False

    @staticmethod
    def save_json_data(
        data: Dict[str, Any],
        output_path: Path,
        filename: str,
        indent: int = 2
    ) -> bool:
        """
        Save dictionary data as JSON.

        Args:
            data: Data to save
            output_path: Output directory
            filename: Output filename (without extension)
            indent: JSON indentation

        Returns:
            bool: True if successful
        """
        try:
            output_path.mkdir(parents=True, exist_ok=True)
            full_path = output_path / f"{filename}.json"

            with open(full_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=indent)

            logger.debug(f"Saved JSON to {full_path}")
            return True

        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save JSON {filename}: {e}")
            return False
