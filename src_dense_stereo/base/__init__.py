"""
Base classes shared by the pipeline modules.
"""

from .file_manager import BaseFileManager

__all__ = ['BaseFileManager']
