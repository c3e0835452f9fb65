from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import numpy as np

from cameraset.core.calibration import PinholeCalibration
from cameraset.core.pose import Pose3

ProjectionOutput = tuple[np.ndarray, "np.ndarray | None", "np.ndarray | None", "np.ndarray | None"]


class CheiralityError(RuntimeError):
    """Raised when a point cannot be projected (behind the camera or at zero depth)."""

    def __init__(self, depth: float) -> None:
        super().__init__(f"point is not in front of the camera (depth={depth:g})")
        self.depth = float(depth)


@runtime_checkable
class Camera(Protocol):
    """
    Projection capability shared by every camera in a `CameraSet`.

    Parameters are laid out as 6 pose parameters followed by `dim - 6`
    calibration parameters. `project` returns (z, D_pose (zdim,6),
    D_point (zdim,3), D_cal (zdim,dim-6)); a block is None unless requested.
    """

    dim: int
    zdim: int

    def project(
        self,
        point: np.ndarray,
        pose_jacobian: bool = False,
        point_jacobian: bool = False,
        calib_jacobian: bool = False,
    ) -> ProjectionOutput: ...

    def equals(self, other: "Camera", tol: float = 1e-9) -> bool: ...

    def print(self, s: str = "") -> None: ...


def _project_to_normalized(
    pose: Pose3,
    point: np.ndarray,
    pose_jacobian: bool,
    point_jacobian: bool,
) -> tuple[np.ndarray, np.ndarray | None, np.ndarray | None]:
    """
    World point -> normalized image coordinates (X/Z, Y/Z), with chained Jacobians.
    """
    q, Dq_pose, Dq_point = pose.transform_to(point, pose_jacobian=pose_jacobian, point_jacobian=point_jacobian)
    X, Y, Z = float(q[0]), float(q[1]), float(q[2])
    if not np.isfinite(Z) or Z <= 0.0:
        raise CheiralityError(Z)

    inv_z = 1.0 / Z
    xy = np.array([X * inv_z, Y * inv_z], dtype=np.float64)
    if Dq_pose is None and Dq_point is None:
        return xy, None, None

    # d(xy)/dq
    Dxy_q = np.array([[inv_z, 0.0, -xy[0] * inv_z], [0.0, inv_z, -xy[1] * inv_z]], dtype=np.float64)
    D_pose = Dxy_q @ Dq_pose if Dq_pose is not None else None
    D_point = Dxy_q @ Dq_point if Dq_point is not None else None
    return xy, D_pose, D_point


@dataclass(frozen=True, eq=False)
class CalibratedCamera:
    """
    Camera with identity intrinsics: measurements are normalized image coordinates.
    """

    pose: Pose3

    dim = 6
    zdim = 2

    def project(
        self,
        point: np.ndarray,
        pose_jacobian: bool = False,
        point_jacobian: bool = False,
        calib_jacobian: bool = False,
    ) -> ProjectionOutput:
        xy, D_pose, D_point = _project_to_normalized(self.pose, point, pose_jacobian, point_jacobian)
        return xy, D_pose, D_point, None

    def backproject(self, xy: np.ndarray, depth: float) -> np.ndarray:
        x, y = (float(c) for c in np.asarray(xy, dtype=np.float64).reshape(2))
        return self.pose.transform_from(np.array([x * depth, y * depth, depth], dtype=np.float64))

    def equals(self, other: object, tol: float = 1e-9) -> bool:
        if not isinstance(other, CalibratedCamera):
            return False
        return self.pose.equals(other.pose, tol)

    def print(self, s: str = "") -> None:
        print(s + str(self))

    def __str__(self) -> str:
        return f"CalibratedCamera\n{self.pose}"


@dataclass(frozen=True, eq=False)
class PinholeCamera:
    """
    Pinhole camera with its own five-parameter calibration (fx, fy, s, u0, v0).

    Parameter layout: 6 pose parameters then the calibration, dim = 11.
    Measurements are pixel coordinates (u, v).
    """

    pose: Pose3
    calibration: PinholeCalibration

    dim = 6 + PinholeCalibration.dim
    zdim = 2

    def project(
        self,
        point: np.ndarray,
        pose_jacobian: bool = False,
        point_jacobian: bool = False,
        calib_jacobian: bool = False,
    ) -> ProjectionOutput:
        xy, Dxy_pose, Dxy_point = _project_to_normalized(self.pose, point, pose_jacobian, point_jacobian)
        need_xy = pose_jacobian or point_jacobian
        uv, D_cal, Duv_xy = self.calibration.uncalibrate(xy, cal_jacobian=calib_jacobian, xy_jacobian=need_xy)
        D_pose = Duv_xy @ Dxy_pose if Dxy_pose is not None else None
        D_point = Duv_xy @ Dxy_point if Dxy_point is not None else None
        return uv, D_pose, D_point, D_cal

    def backproject(self, uv: np.ndarray, depth: float) -> np.ndarray:
        x, y = self.calibration.calibrate(uv)
        return self.pose.transform_from(np.array([x * depth, y * depth, depth], dtype=np.float64))

    def equals(self, other: object, tol: float = 1e-9) -> bool:
        if not isinstance(other, PinholeCamera):
            return False
        return self.pose.equals(other.pose, tol) and self.calibration.equals(other.calibration, tol)

    def print(self, s: str = "") -> None:
        print(s + str(self))

    def __str__(self) -> str:
        return f"PinholeCamera\n{self.pose}\n{self.calibration}"
