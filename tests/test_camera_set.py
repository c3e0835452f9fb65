import numpy as np
import pytest

from cameraset.camera_set import CameraSet
from cameraset.core.calibration import PinholeCalibration
from cameraset.core.camera import CalibratedCamera, CheiralityError, PinholeCamera
from cameraset.core.pose import Pose3

CAL = PinholeCalibration(fx=500.0, fy=500.0, s=0.0, u0=320.0, v0=240.0)


def _ring(n: int, radius: float = 10.0) -> list[PinholeCamera]:
    cams = []
    for i in range(n):
        a = 2.0 * np.pi * i / max(n, 1)
        eye = [radius * np.sin(a), -radius * np.cos(a), 0.5 * i]
        cal = PinholeCalibration(fx=500.0 + 10.0 * i, fy=490.0, s=0.1 * i, u0=320.0, v0=240.0)
        cams.append(PinholeCamera(pose=Pose3.look_at(eye=eye, target=[0.0, 0.0, 0.0]), calibration=cal))
    return cams


@pytest.mark.parametrize("n", [0, 1, 4])
def test_project_shapes(n):
    cs = CameraSet(PinholeCamera, _ring(n))
    res = cs.project(np.array([0.2, -0.1, 0.3]), True, True, True)
    assert res.measurements.shape == (n, 2)
    assert res.F.shape == (2 * n, 6)
    assert res.E.shape == (2 * n, 3)
    assert res.H.shape == (2 * n, 5)


def test_empty_set_returns_empty_outputs():
    cs = CameraSet(PinholeCamera)
    assert cs.size() == 0
    res = cs.project([1.0, 2.0, 3.0], pose_jacobian=True, point_jacobian=True)
    assert res.measurements.shape == (0, 2)
    assert res.F.shape == (0, 6)
    assert res.E.shape == (0, 3)
    assert res.H is None


def test_blocks_absent_unless_requested():
    cs = CameraSet(PinholeCamera, _ring(3))
    res = cs.project(np.zeros(3))
    assert res.F is None and res.E is None and res.H is None
    res = cs.project(np.zeros(3), point_jacobian=True)
    assert res.F is None and res.H is None
    assert res.E.shape == (6, 3)


def test_derivatives_do_not_change_measurements():
    cs = CameraSet(PinholeCamera, _ring(5))
    p = np.array([0.3, 0.2, -0.4])
    plain = cs.project(p, False, False, False)
    full = cs.project(p, True, True, True)
    assert np.array_equal(plain.measurements, full.measurements)


def test_row_blocks_match_individual_cameras():
    cams = _ring(4)
    cs = CameraSet(PinholeCamera, cams)
    p = np.array([0.3, 0.2, -0.4])
    res = cs.project(p, True, True, True)
    for i, cam in enumerate(cams):
        z, Fi, Ei, Hi = cam.project(p, True, True, True)
        rows = slice(2 * i, 2 * i + 2)
        assert np.array_equal(res.measurements[i], z)
        assert np.array_equal(res.F[rows], Fi)
        assert np.array_equal(res.E[rows], Ei)
        assert np.array_equal(res.H[rows], Hi)


def test_two_identical_cameras_give_identical_blocks():
    pose = Pose3.look_at(eye=[0.0, -10.0, 0.0], target=[0.0, 0.0, 0.0])
    cs = CameraSet(PinholeCamera)
    cs.add(PinholeCamera(pose=pose, calibration=CAL))
    cs.add(PinholeCamera(pose=pose, calibration=CAL))
    res = cs.project(np.array([0.5, 0.0, 0.5]), pose_jacobian=True)
    assert np.array_equal(res.measurements[0], res.measurements[1])
    assert np.array_equal(res.F[0:2], res.F[2:4])


def test_calibration_block_never_produced_for_dim_six():
    cams = [CalibratedCamera(pose=c.pose) for c in _ring(3)]
    cs = CameraSet(CalibratedCamera, cams)
    res = cs.project(np.zeros(3), True, True, True)
    assert res.H is None
    assert res.F.shape == (6, 6)
    assert res.E.shape == (6, 3)


def test_parallel_matches_serial():
    cs = CameraSet(PinholeCamera, _ring(8))
    p = np.array([0.3, 0.2, -0.4])
    serial = cs.project(p, True, True, True)
    parallel = cs.project(p, True, True, True, max_workers=4)
    for name in ("measurements", "F", "E", "H"):
        assert np.array_equal(getattr(serial, name), getattr(parallel, name))


@pytest.mark.parametrize("max_workers", [None, 3])
def test_cheirality_error_propagates(max_workers):
    cams = _ring(2)
    cams.append(PinholeCamera(pose=Pose3.look_at(eye=[0.0, -10.0, 0.0], target=[0.0, -20.0, 0.0]), calibration=CAL))
    cs = CameraSet(PinholeCamera, cams)
    with pytest.raises(CheiralityError):
        cs.project(np.zeros(3), True, True, True, max_workers=max_workers)


def test_project_rejects_bad_point():
    cs = CameraSet(PinholeCamera, _ring(2))
    with pytest.raises(ValueError):
        cs.project([1.0, 2.0])
    with pytest.raises(ValueError):
        cs.project([1.0, np.inf, 2.0])


def test_add_rejects_other_camera_type():
    cs = CameraSet(PinholeCamera)
    with pytest.raises(TypeError):
        cs.add(CalibratedCamera(pose=Pose3.identity()))


def test_add_rejects_subclass_with_different_dim():
    class NarrowPinhole(PinholeCamera):
        dim = 9

    cam = _ring(1)[0]
    cs = CameraSet(PinholeCamera)
    with pytest.raises(TypeError):
        cs.add(NarrowPinhole(pose=cam.pose, calibration=cam.calibration))
    assert cs.size() == 0


def test_projection_results_compare_by_identity():
    cs = CameraSet(PinholeCamera, _ring(2))
    a = cs.project(np.zeros(3))
    b = cs.project(np.zeros(3))
    assert a == a
    assert a != b
    assert np.array_equal(a.measurements, b.measurements)


def test_equals_is_reflexive():
    cs = CameraSet(PinholeCamera, _ring(3))
    assert cs.equals(cs, 0.0)
    assert cs.equals(cs, 1e-9)
    assert CameraSet(PinholeCamera).equals(CameraSet(PinholeCamera))


def test_equals_detects_difference_at_first_index():
    a = _ring(3)
    b = list(a)
    b[0] = PinholeCamera(pose=a[0].pose.retract(np.full(6, 1e-3)), calibration=a[0].calibration)
    assert not CameraSet(PinholeCamera, a).equals(CameraSet(PinholeCamera, b))


def test_equals_compares_every_camera():
    a = _ring(3)
    b = list(a)
    b[2] = PinholeCamera(pose=a[2].pose, calibration=CAL)
    assert not CameraSet(PinholeCamera, a).equals(CameraSet(PinholeCamera, b))
    assert CameraSet(PinholeCamera, a).equals(CameraSet(PinholeCamera, list(a)))


def test_equals_false_for_different_sizes():
    a = _ring(3)
    assert not CameraSet(PinholeCamera, a).equals(CameraSet(PinholeCamera, a[:2]))
    assert not CameraSet(PinholeCamera, a[:2]).equals(CameraSet(PinholeCamera, a))


def test_cameras_accessor_and_builder_preserve_order():
    cams = _ring(4)
    cs = CameraSet(PinholeCamera, cams)
    assert cs.cameras == tuple(cams)
    rebuilt = CameraSet.from_cameras(PinholeCamera, cs.cameras)
    assert rebuilt.equals(cs)
    assert [c is d for c, d in zip(rebuilt, cams)] == [True] * 4


def test_print_uses_label(capsys):
    cs = CameraSet(PinholeCamera, _ring(2))
    cs.print("rig: ")
    out = capsys.readouterr().out
    assert out.startswith("rig: CameraSet, cameras = ")
    assert out.count("PinholeCamera") == 2
