"""
Base file management utilities for the dense stereo pipeline.

This module provides the base class for writing per-pair result folders.
"""

from pathlib import Path
from typing import Dict, Any
from abc import ABC, abstractmethod

from utils.file_operations import PathManager, DataSaver
from utils.logger_config import get_logger


class BaseFileManager(ABC):
    """
    Base class for file management operations.

    Provides common functionality for:
    - Directory structure setup
    - Metadata saving
    - Save statistics

    Subclasses implement the product-specific save operations.
    """

    def __init__(self, base_output_path: Path):
        """
        Initialize base file manager.

        Args:
            base_output_path: Base path for output files
        """
        self.base_output_path = Path(base_output_path)
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

        self.processing_stats = {
            'total_operations': 0,
            'successful_operations': 0,
            'failed_operations': 0
        }

    def setup_output_directory(self, pair_name: str) -> Path:
        """
        Create the output folder for one image pair.

        Returns:
            Path: ``<base_output_path>/<folder_name>/<pair_name>``
        """
        output_pair_folder = self.base_output_path / self.get_folder_name() / pair_name
        PathManager.ensure_directory_exists(output_pair_folder)
        self.logger.debug(f"Set up output directory {output_pair_folder}")
        return output_pair_folder

    def record(self, operation: str, success: bool) -> bool:
        """Count one save operation and log failures."""
        self.processing_stats['total_operations'] += 1
        if success:
            self.processing_stats['successful_operations'] += 1
        else:
            self.processing_stats['failed_operations'] += 1
            self.logger.error(f"Save operation failed: {operation}")
        return success

    def save_metadata(self, metadata: Dict[str, Any], output_path: Path,
                      pair_name: str, filename_prefix: str = "metadata") -> bool:
        """
        Save metadata as ``<prefix>_<pair_name>.json``.

        Returns:
            bool: True if the file was written
        """
        filename = f'{filename_prefix}_{pair_name}'
        success = DataSaver.save_json_data(metadata, output_path, filename)
        return self.record(f"{filename}.json", success)

    def get_processing_statistics(self) -> Dict[str, Any]:
        """
        Get current processing statistics.

        Returns:
            Dict[str, Any]: Processing statistics
        """
        stats = self.processing_stats.copy()
        if stats['total_operations'] > 0:
            stats['success_rate'] = stats['successful_operations'] / stats['total_operations']
        else:
            stats['success_rate'] = 0

        return stats

    def reset_processing_statistics(self) -> None:
        """Reset processing statistics counters."""
        self.processing_stats = {
            'total_operations': 0,
            'successful_operations': 0,
            'failed_operations': 0
        }

    @abstractmethod
    def get_folder_name(self) -> str:
        """
        Get the specific folder name for this file manager type.

        Returns:
            str: Folder name for this processing type
        """
        pass
