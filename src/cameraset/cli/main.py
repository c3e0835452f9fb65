from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from cameraset.core.camera import CheiralityError
from cameraset.rig import RigValidationError, load_rig

JACOBIAN_BLOCKS = ("F", "E", "H")


def _parse_blocks(raw: str) -> tuple[str, ...]:
    blocks = tuple(b.strip().upper() for b in raw.split(",") if b.strip())
    for b in blocks:
        if b not in JACOBIAN_BLOCKS:
            raise argparse.ArgumentTypeError(f"unknown jacobian block {b!r} (choose from F,E,H)")
    return blocks


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="cameraset")
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for library diagnostics.",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    val = sub.add_parser("validate-rig", help="Validate a rig JSON file and print its camera count.")
    val.add_argument("rig", type=Path)

    proj = sub.add_parser("project", help="Project one 3D point through every camera of a rig.")
    proj.add_argument("rig", type=Path)
    proj.add_argument("--point", type=float, nargs=3, required=True, metavar=("X", "Y", "Z"))
    proj.add_argument(
        "--jacobians",
        type=_parse_blocks,
        default=(),
        help="Comma-separated blocks to stack: F (pose), E (point), H (calibration).",
    )
    proj.add_argument("--workers", type=int, default=None, help="Evaluate cameras on a thread pool (>1 enables).")

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        camera_set = load_rig(args.rig)
    except RigValidationError as e:
        print(f"{args.rig}: invalid rig: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"{args.rig}: cannot read rig: {e}", file=sys.stderr)
        return 1

    if args.cmd == "validate-rig":
        print(f"{args.rig}: {camera_set.size()} cameras ({camera_set.camera_type.__name__}, dim={camera_set.dim})")
        return 0

    if args.cmd == "project":
        try:
            res = camera_set.project(
                args.point,
                pose_jacobian="F" in args.jacobians,
                point_jacobian="E" in args.jacobians,
                calib_jacobian="H" in args.jacobians,
                max_workers=args.workers,
            )
        except CheiralityError as e:
            print(f"cannot project point {args.point}: {e}", file=sys.stderr)
            return 2

        out: dict[str, object] = {"measurements": res.measurements.tolist()}
        for name in JACOBIAN_BLOCKS:
            block = getattr(res, name)
            if block is not None:
                out[name] = block.tolist()
        print(json.dumps(out, indent=2))
        return 0

    raise AssertionError(f"Unhandled cmd: {args.cmd}")


if __name__ == "__main__":
    raise SystemExit(main())
