from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import numpy as np

from cameraset.camera_set import CameraSet
from cameraset.core.calibration import PinholeCalibration, calibration_to_dict
from cameraset.core.camera import CalibratedCamera, PinholeCamera
from cameraset.core.pose import Pose3

logger = logging.getLogger(__name__)

RIG_SCHEMA_VERSION = "cameraset.rig.v0"

CAMERA_MODELS: dict[str, type] = {
    "calibrated": CalibratedCamera,
    "pinhole": PinholeCamera,
}


class RigValidationError(ValueError):
    pass


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise RigValidationError(msg)


def _vec3(raw: Any, name: str) -> np.ndarray:
    _require(isinstance(raw, (list, tuple)) and len(raw) == 3, f"{name} must be [x,y,z]")
    try:
        v = np.asarray([float(c) for c in raw], dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise RigValidationError(f"{name} must contain numbers") from e
    _require(bool(np.all(np.isfinite(v))), f"{name} must be finite")
    return v


def _parse_calibration(cam: dict[str, Any], where: str) -> PinholeCalibration:
    values: dict[str, float] = {}
    for key, default in (("fx", None), ("fy", None), ("s", 0.0), ("u0", 0.0), ("v0", 0.0)):
        raw = cam.get(key, default)
        _require(raw is not None, f"{where}.{key} is required for pinhole cameras")
        try:
            values[key] = float(raw)
        except (TypeError, ValueError) as e:
            raise RigValidationError(f"{where}.{key} must be a number") from e
        _require(bool(np.isfinite(values[key])), f"{where}.{key} must be finite")
    _require(values["fx"] != 0.0 and values["fy"] != 0.0, f"{where}.fx and {where}.fy must be non-zero")
    return PinholeCalibration(**values)


def load_rig(path: Path) -> CameraSet:
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise RigValidationError(f"{path}: not valid JSON: {e}") from e
    camera_set = parse_rig(data)
    logger.debug("loaded rig %s: %d %s cameras", path, camera_set.size(), data.get("camera_model", "pinhole"))
    return camera_set


def parse_rig(data: dict[str, Any]) -> CameraSet:
    """
    Build a CameraSet from a rig description:

      {
        "schema_version": "cameraset.rig.v0",
        "camera_model": "pinhole",
        "cameras": [{"rvec": [...], "t": [...], "fx": ..., "fy": ..., "s": ..., "u0": ..., "v0": ...}, ...]
      }

    `rvec` is the axis-angle rotation camera->world and `t` the camera center (world frame).
    Camera order in the list is the row-block order of the projected Jacobians.
    """
    _require(isinstance(data, dict), "rig must be a JSON object")
    schema_version = data.get("schema_version")
    _require(schema_version == RIG_SCHEMA_VERSION, f"schema_version must be {RIG_SCHEMA_VERSION}")

    model = data.get("camera_model", "pinhole")
    _require(model in CAMERA_MODELS, f"camera_model must be one of {sorted(CAMERA_MODELS)}")
    camera_type = CAMERA_MODELS[model]

    cameras = data.get("cameras")
    _require(isinstance(cameras, list), "cameras must be a list")

    camera_set: CameraSet = CameraSet(camera_type)
    for i, cam in enumerate(cameras):
        where = f"cameras[{i}]"
        _require(isinstance(cam, dict), f"{where} must be an object")
        _require("rvec" in cam, f"{where}.rvec is required")
        rvec = _vec3(cam["rvec"], f"{where}.rvec")
        _require("t" in cam, f"{where}.t is required")
        t = _vec3(cam["t"], f"{where}.t")
        pose = Pose3.from_rotvec(rvec, t)
        if camera_type is PinholeCamera:
            camera_set.add(PinholeCamera(pose=pose, calibration=_parse_calibration(cam, where)))
        else:
            camera_set.add(CalibratedCamera(pose=pose))
    return camera_set


def rig_to_dict(camera_set: CameraSet) -> dict[str, Any]:
    models = {cls: name for name, cls in CAMERA_MODELS.items()}
    if camera_set.camera_type not in models:
        raise ValueError(f"unsupported camera type: {camera_set.camera_type.__name__}")

    cameras: list[dict[str, Any]] = []
    for camera in camera_set.cameras:
        entry: dict[str, Any] = {
            "rvec": camera.pose.rotvec().tolist(),
            "t": camera.pose.t.tolist(),
        }
        if isinstance(camera, PinholeCamera):
            entry.update(calibration_to_dict(camera.calibration))
        cameras.append(entry)

    return {
        "schema_version": RIG_SCHEMA_VERSION,
        "camera_model": models[camera_set.camera_type],
        "cameras": cameras,
    }


def save_rig(path: Path, camera_set: CameraSet) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(rig_to_dict(camera_set), indent=2, sort_keys=True), encoding="utf-8")
    return path
