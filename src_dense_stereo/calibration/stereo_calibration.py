"""Calibration records supplied programmatically instead of from disk"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Any


@dataclass
class CameraCalibration:
    """Pinhole intrinsics and four distortion coefficients of one camera"""
    fx: float
    fy: float
    cx: float
    cy: float
    d0: float = 0.0
    d1: float = 0.0
    d2: float = 0.0
    d3: float = 0.0


@dataclass
class ExtrinsicCalibration:
    """Translation and axis-angle rotation between the two cameras"""
    tx: float
    ty: float = 0.0
    tz: float = 0.0
    rx: float = 0.0
    ry: float = 0.0
    rz: float = 0.0


@dataclass
class StereoCameraCalibration:
    """Complete calibration of a two-camera rig"""
    cam_left: CameraCalibration
    cam_right: CameraCalibration
    extrinsic: ExtrinsicCalibration = field(default_factory=lambda: ExtrinsicCalibration(tx=0.0))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StereoCameraCalibration':
        """Create from dictionary representation"""
        return cls(
            cam_left=CameraCalibration(**data['cam_left']),
            cam_right=CameraCalibration(**data['cam_right']),
            extrinsic=ExtrinsicCalibration(**data['extrinsic'])
        )
