from cameraset.camera_set import CameraSet, ProjectionResult
from cameraset.core.calibration import PinholeCalibration
from cameraset.core.camera import CalibratedCamera, Camera, CheiralityError, PinholeCamera
from cameraset.core.pose import Pose3
from cameraset.rig import RigValidationError, load_rig, parse_rig, rig_to_dict, save_rig

__all__ = [
    "CameraSet",
    "ProjectionResult",
    "Camera",
    "CalibratedCamera",
    "PinholeCamera",
    "PinholeCalibration",
    "Pose3",
    "CheiralityError",
    "RigValidationError",
    "load_rig",
    "parse_rig",
    "rig_to_dict",
    "save_rig",
]
