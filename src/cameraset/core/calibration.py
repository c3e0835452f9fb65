from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class PinholeCalibration:
    """
    Five-parameter pinhole intrinsics acting on normalized coordinates (x=X/Z, y=Y/Z):

      u = fx x + s y + u0
      v = fy y + v0

    Parameter order (for Jacobians): fx, fy, s, u0, v0.
    """

    fx: float
    fy: float
    s: float = 0.0
    u0: float = 0.0
    v0: float = 0.0

    dim = 5

    def __post_init__(self) -> None:
        vals = self.vector()
        if not np.all(np.isfinite(vals)):
            raise ValueError("calibration must be finite")
        if abs(self.fx) < 1e-12 or abs(self.fy) < 1e-12:
            raise ValueError("fx and fy must be non-zero")

    def vector(self) -> np.ndarray:
        return np.array([self.fx, self.fy, self.s, self.u0, self.v0], dtype=np.float64)

    def K(self) -> np.ndarray:
        return np.array(
            [[float(self.fx), float(self.s), float(self.u0)], [0.0, float(self.fy), float(self.v0)], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )

    def uncalibrate(
        self,
        xy: np.ndarray,
        cal_jacobian: bool = False,
        xy_jacobian: bool = False,
    ) -> tuple[np.ndarray, np.ndarray | None, np.ndarray | None]:
        """
        Normalized coordinates -> pixels.

        Returns (uv, D_cal (2,5) or None, D_xy (2,2) or None).
        """
        x, y = (float(c) for c in np.asarray(xy, dtype=np.float64).reshape(2))
        uv = np.array([self.fx * x + self.s * y + self.u0, self.fy * y + self.v0], dtype=np.float64)
        D_cal = None
        D_xy = None
        if cal_jacobian:
            D_cal = np.array([[x, 0.0, y, 1.0, 0.0], [0.0, y, 0.0, 0.0, 1.0]], dtype=np.float64)
        if xy_jacobian:
            D_xy = np.array([[self.fx, self.s], [0.0, self.fy]], dtype=np.float64)
        return uv, D_cal, D_xy

    def calibrate(self, uv: np.ndarray) -> np.ndarray:
        """Inverse of `uncalibrate`: pixels -> normalized coordinates."""
        u, v = (float(c) for c in np.asarray(uv, dtype=np.float64).reshape(2))
        y = (v - self.v0) / self.fy
        x = (u - self.u0 - self.s * y) / self.fx
        return np.array([x, y], dtype=np.float64)

    def equals(self, other: "PinholeCalibration", tol: float = 1e-9) -> bool:
        return bool(np.allclose(self.vector(), other.vector(), rtol=0.0, atol=tol))

    def __str__(self) -> str:
        return f"fx: {self.fx:g}, fy: {self.fy:g}, s: {self.s:g}, u0: {self.u0:g}, v0: {self.v0:g}"


def calibration_to_dict(c: PinholeCalibration) -> dict:
    return {"fx": c.fx, "fy": c.fy, "s": c.s, "u0": c.u0, "v0": c.v0}
