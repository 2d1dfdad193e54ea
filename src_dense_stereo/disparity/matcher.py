"""
Stereo matcher interface and its parameter set.

The pipeline only depends on ``StereoMatcher.match``; any dense correspondence
estimator that returns a left-reference and a right-reference float disparity
field of the input size can be plugged in.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, fields
from typing import Dict, Any, Optional, Tuple

import numpy as np

from ..exceptions import ConfigurationCorrupt


@dataclass
class MatcherConfiguration:
    """
    Dense matcher parameters in the libelas naming.

    Not every field has an equivalent in every engine; engines ignore what
    they cannot use and log it once.
    """
    disp_min: int = 0
    disp_max: int = 255
    support_threshold: float = 0.85
    support_texture: int = 10
    candidate_stepsize: int = 5
    incon_window_size: int = 5
    incon_threshold: int = 5
    incon_min_support: int = 5
    add_corners: bool = False
    grid_size: int = 20
    beta: float = 0.02
    gamma: float = 3
    sigma: float = 1
    sradius: float = 2
    match_texture: int = 1
    lr_threshold: int = 2
    speckle_sim_threshold: float = 1
    speckle_size: int = 200
    ipol_gap_width: int = 3
    filter_median: bool = False
    filter_adaptive_mean: bool = True
    postprocess_only_left: bool = False
    subsampling: bool = False

    def __post_init__(self):
        self._validate_types()
        if self.disp_min < 0:
            raise ConfigurationCorrupt(f"disp_min must be non-negative, got {self.disp_min}",
                                       field='disp_min')
        if self.disp_max <= self.disp_min:
            raise ConfigurationCorrupt(
                f"disp_max ({self.disp_max}) must be greater than disp_min ({self.disp_min})",
                field='disp_max'
            )
        if not 0.0 <= self.support_threshold <= 1.0:
            raise ConfigurationCorrupt(
                f"support_threshold must be in [0, 1], got {self.support_threshold}",
                field='support_threshold'
            )

    def _validate_types(self) -> None:
        """Check each field holds a value of its declared kind; ints are accepted for floats."""
        for f in fields(self):
            value = getattr(self, f.name)
            kind = f.type
            if kind is bool:
                valid = isinstance(value, bool)
            elif kind is int:
                valid = isinstance(value, int) and not isinstance(value, bool)
            else:
                valid = isinstance(value, (int, float)) and not isinstance(value, bool)
            if not valid:
                raise ConfigurationCorrupt(
                    f"{f.name} must be of type {kind.__name__}, got {value!r}",
                    field=f.name
                )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'MatcherConfiguration':
        """
        Build a configuration from a JSON block, keeping defaults for
        missing keys.

        Raises:
            ConfigurationCorrupt: If the block contains unknown keys
        """
        data = data or {}
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationCorrupt(f"Unknown matcher parameters: {', '.join(unknown)}",
                                       field=unknown[0])
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class StereoMatcher(ABC):
    """Dense correspondence estimator used by the pipeline."""

    @abstractmethod
    def match(self, left: np.ndarray, right: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute disparity for a rectified grayscale pair.

        Args:
            left: Rectified left image, uint8 (height, width)
            right: Rectified right image, uint8 (height, width)

        Returns:
            (left_disparity, right_disparity): float32 arrays of the input
            shape, negative where no match was found
        """
