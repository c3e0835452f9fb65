from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Generic, Iterable, Iterator, TypeVar

import numpy as np

from cameraset.core.camera import Camera, CheiralityError

logger = logging.getLogger(__name__)

CameraT = TypeVar("CameraT", bound=Camera)


@dataclass(frozen=True, eq=False)
class ProjectionResult:
    """
    Stacked projection of one point through every camera of a set.

    Row-block i (rows zdim*i .. zdim*i+zdim-1) of F/E/H belongs to camera i.
    A block is None when it was not requested (H is also None when dim == 6).
    """

    measurements: np.ndarray  # (N,zdim)
    F: np.ndarray | None = None  # (zdim*N,6) pose
    E: np.ndarray | None = None  # (zdim*N,3) point
    H: np.ndarray | None = None  # (zdim*N,dim-6) calibration


class CameraSet(Generic[CameraT]):
    """
    Ordered, append-only set of cameras of one type, projected as a single observation model.

    Insertion order is the row-block order of every stacked Jacobian, so it
    must match the order of the measurements and keys kept by the caller.
    """

    def __init__(self, camera_type: type[CameraT], cameras: Iterable[CameraT] = ()) -> None:
        dim = int(camera_type.dim)
        zdim = int(camera_type.zdim)
        if dim < 6:
            raise ValueError("camera dim must be >= 6 (6 pose parameters then calibration)")
        if zdim < 1:
            raise ValueError("camera zdim must be >= 1")
        self._camera_type = camera_type
        self._dim = dim
        self._zdim = zdim
        self._cameras: list[CameraT] = []
        for camera in cameras:
            self.add(camera)

    @classmethod
    def from_cameras(cls, camera_type: type[CameraT], cameras: Iterable[CameraT]) -> "CameraSet[CameraT]":
        """Rebuild a set from a camera sequence, preserving order."""
        return cls(camera_type, cameras)

    @property
    def camera_type(self) -> type[CameraT]:
        return self._camera_type

    @property
    def dim(self) -> int:
        return self._dim

    @property
    def zdim(self) -> int:
        return self._zdim

    @property
    def cameras(self) -> tuple[CameraT, ...]:
        return tuple(self._cameras)

    def add(self, camera: CameraT) -> None:
        if not isinstance(camera, self._camera_type):
            raise TypeError(f"expected {self._camera_type.__name__}, got {type(camera).__name__}")
        if int(camera.dim) != self._dim or int(camera.zdim) != self._zdim:
            raise TypeError(
                f"camera dims (dim={camera.dim}, zdim={camera.zdim}) differ from the set (dim={self._dim}, zdim={self._zdim})"
            )
        self._cameras.append(camera)

    def size(self) -> int:
        return len(self._cameras)

    def __len__(self) -> int:
        return len(self._cameras)

    def __iter__(self) -> Iterator[CameraT]:
        return iter(self._cameras)

    def __getitem__(self, i: int) -> CameraT:
        return self._cameras[i]

    def project(
        self,
        point: np.ndarray,
        pose_jacobian: bool = False,
        point_jacobian: bool = False,
        calib_jacobian: bool = False,
        *,
        max_workers: int | None = None,
    ) -> ProjectionResult:
        """
        Project `point` through every camera, optionally stacking derivatives.

        - F: d(z)/d(pose), (zdim*N, 6)
        - E: d(z)/d(point), (zdim*N, 3)
        - H: d(z)/d(calibration), (zdim*N, dim-6), only when dim > 6

        Raises CheiralityError (unchanged) if any camera cannot observe the point.
        """
        point = np.asarray(point, dtype=np.float64).reshape(-1)
        if point.shape != (3,) or not np.all(np.isfinite(point)):
            raise ValueError("point must be a finite 3-vector")

        n = len(self._cameras)
        zdim = self._zdim
        want_H = bool(calib_jacobian) and self._dim > 6
        if calib_jacobian and not want_H:
            logger.debug("calibration jacobian requested for dim=%d cameras; H is not produced", self._dim)

        # Preallocate everything before any camera is evaluated.
        z = np.empty((n, zdim), dtype=np.float64)
        F = np.empty((zdim * n, 6), dtype=np.float64) if pose_jacobian else None
        E = np.empty((zdim * n, 3), dtype=np.float64) if point_jacobian else None
        H = np.empty((zdim * n, self._dim - 6), dtype=np.float64) if want_H else None

        def fill(i: int) -> None:
            try:
                zi, Fi, Ei, Hi = self._cameras[i].project(
                    point,
                    pose_jacobian=bool(pose_jacobian),
                    point_jacobian=bool(point_jacobian),
                    calib_jacobian=want_H,
                )
            except CheiralityError:
                logger.debug("camera %d cannot observe point %s", i, point)
                raise
            rows = slice(zdim * i, zdim * (i + 1))
            z[i] = zi
            if F is not None:
                F[rows] = Fi
            if E is not None:
                E[rows] = Ei
            if H is not None:
                H[rows] = Hi

        if max_workers is not None and int(max_workers) > 1 and n > 1:
            with ThreadPoolExecutor(max_workers=int(max_workers)) as pool:
                list(pool.map(fill, range(n)))
        else:
            for i in range(n):
                fill(i)

        return ProjectionResult(measurements=z, F=F, E=E, H=H)

    def equals(self, other: "CameraSet", tol: float = 1e-9) -> bool:
        """
        Camera-by-camera comparison in order; sets of different size are not equal.
        """
        if len(self._cameras) != len(other._cameras):
            return False
        for a, b in zip(self._cameras, other._cameras):
            if not a.equals(b, tol):
                return False
        return True

    def print(self, s: str = "") -> None:
        print(s + "CameraSet, cameras = ")
        for camera in self._cameras:
            camera.print()

    def __str__(self) -> str:
        lines = ["CameraSet, cameras = "]
        lines.extend(str(camera) for camera in self._cameras)
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"CameraSet({self._camera_type.__name__}, n={len(self._cameras)})"
