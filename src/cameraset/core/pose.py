from __future__ import annotations

from dataclasses import dataclass

import numpy as np


def skew(w: np.ndarray) -> np.ndarray:
    """Cross-product matrix [w]x such that [w]x @ v == cross(w, v)."""
    wx, wy, wz = (float(c) for c in np.asarray(w, dtype=np.float64).reshape(3))
    return np.array([[0.0, -wz, wy], [wz, 0.0, -wx], [-wy, wx, 0.0]], dtype=np.float64)


@dataclass(frozen=True, eq=False)
class Pose3:
    """
    Rigid pose of a camera in the world frame.

    Convention:
    - `R` rotates camera-frame vectors into the world frame
    - `t` is the camera center in world coordinates
    therefore a world point P maps to the camera frame as P_c = R^T (P - t).

    Derivatives w.r.t. the pose are taken in the tangent space of the right
    perturbation used by `retract`, xi = (omega, v), rotation first.
    """

    R: np.ndarray  # (3,3)
    t: np.ndarray  # (3,)

    def __post_init__(self) -> None:
        R = np.asarray(self.R, dtype=np.float64).reshape(3, 3)
        t = np.asarray(self.t, dtype=np.float64).reshape(3)
        if not (np.all(np.isfinite(R)) and np.all(np.isfinite(t))):
            raise ValueError("pose must be finite")
        object.__setattr__(self, "R", R)
        object.__setattr__(self, "t", t)

    @classmethod
    def identity(cls) -> "Pose3":
        return cls(R=np.eye(3, dtype=np.float64), t=np.zeros((3,), dtype=np.float64))

    @classmethod
    def from_rotvec(cls, rvec: np.ndarray, t: np.ndarray) -> "Pose3":
        from scipy.spatial.transform import Rotation as R  # type: ignore

        rot = R.from_rotvec(np.asarray(rvec, dtype=np.float64).reshape(3)).as_matrix()
        return cls(R=rot, t=t)

    @classmethod
    def look_at(cls, eye: np.ndarray, target: np.ndarray, up: np.ndarray = (0.0, 0.0, 1.0)) -> "Pose3":
        """
        Camera at `eye` looking at `target`: z forward, x right, y down in the image.
        """
        eye = np.asarray(eye, dtype=np.float64).reshape(3)
        target = np.asarray(target, dtype=np.float64).reshape(3)
        up = np.asarray(up, dtype=np.float64).reshape(3)

        zc = target - eye
        nz = np.linalg.norm(zc)
        if nz < 1e-12:
            raise ValueError("eye and target must differ")
        zc = zc / nz
        xc = np.cross(-up, zc)
        nx = np.linalg.norm(xc)
        if nx < 1e-12:
            raise ValueError("up must not be parallel to the viewing direction")
        xc = xc / nx
        yc = np.cross(zc, xc)
        return cls(R=np.stack([xc, yc, zc], axis=1), t=eye)

    def rotvec(self) -> np.ndarray:
        from scipy.spatial.transform import Rotation as R  # type: ignore

        return R.from_matrix(self.R).as_rotvec()

    def retract(self, xi: np.ndarray) -> "Pose3":
        """
        Right perturbation: (R Exp(omega), t + R v) for xi = (omega, v).
        """
        from scipy.spatial.transform import Rotation as R  # type: ignore

        xi = np.asarray(xi, dtype=np.float64).reshape(6)
        dR = R.from_rotvec(xi[:3]).as_matrix()
        return Pose3(R=self.R @ dR, t=self.t + self.R @ xi[3:])

    def transform_to(
        self,
        point: np.ndarray,
        pose_jacobian: bool = False,
        point_jacobian: bool = False,
    ) -> tuple[np.ndarray, np.ndarray | None, np.ndarray | None]:
        """
        World point -> camera frame.

        Returns (P_c, D_pose (3,6) or None, D_point (3,3) or None).
        """
        point = np.asarray(point, dtype=np.float64).reshape(3)
        q = self.R.T @ (point - self.t)
        D_pose = None
        D_point = None
        if pose_jacobian:
            D_pose = np.hstack([skew(q), -np.eye(3, dtype=np.float64)])
        if point_jacobian:
            D_point = self.R.T.copy()
        return q, D_pose, D_point

    def transform_from(self, point_cam: np.ndarray) -> np.ndarray:
        point_cam = np.asarray(point_cam, dtype=np.float64).reshape(3)
        return self.R @ point_cam + self.t

    def equals(self, other: "Pose3", tol: float = 1e-9) -> bool:
        return bool(np.allclose(self.R, other.R, rtol=0.0, atol=tol) and np.allclose(self.t, other.t, rtol=0.0, atol=tol))

    def __str__(self) -> str:
        r = np.array2string(self.R, precision=6, suppress_small=True)
        t = np.array2string(self.t, precision=6, suppress_small=True)
        return f"R:\n{r}\nt: {t}"
