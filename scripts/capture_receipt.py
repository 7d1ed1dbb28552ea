#!/usr/bin/env python
"""Headless receipt capture.

Opens the configured camera, waits for the first frames, captures one
JPEG and writes it to the output directory.

Use this to:
- Verify a camera works without starting the UI
- Grab a receipt photo from a network camera or the simulated camera
- List the cameras a backend can see (--list-devices)

Exit codes: 0 on success, 1 when the camera or capture failed, 2 for
configuration errors.
"""

import argparse
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.capture_factory import build_backend, build_workflow
from configs.settings import apply_overrides, load_config
from exceptions import ConfigError
from log_config.logger import configure_file_logging, get_logger, set_console_level

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Capture one receipt photo from a camera.")
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--backend", default=None, choices=("opencv", "sim"))
    parser.add_argument("--source", default=None, help="Camera index or stream URL")
    parser.add_argument("--output", type=Path, default=Path("receipts"), help="Directory for the JPEG")
    parser.add_argument(
        "--warmup-timeout", type=float, default=5.0, help="Seconds to wait for the first frame"
    )
    parser.add_argument("--list-devices", action="store_true", help="List cameras and exit")
    return parser.parse_args(argv)


def list_devices(config) -> int:
    backend = build_backend(config.camera)
    devices = backend.enumerate_devices()
    if not devices:
        print(f"No cameras found ({backend.name} backend)")
        return 1
    for device in devices:
        print(f"{device.device_id}\t{device.label}")
    return 0


def wait_for_frame(workflow, timeout_s: float, poll_s: float = 0.05) -> bool:
    """Poll the surface until it has a frame or ``timeout_s`` elapses."""
    surface = workflow.session.surface
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        if surface.refresh():
            return True
        time.sleep(poll_s)
    return False


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        config = apply_overrides(load_config(args.config), args.backend, args.source)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    set_console_level(config.logging.level)
    if config.logging.logs_dir:
        configure_file_logging(config.logging.logs_dir)

    if args.list_devices:
        return list_devices(config)

    with build_workflow(config) as workflow:
        if not workflow.start():
            logger.error(workflow.last_error.message if workflow.last_error else "Camera failed to start")
            return 1

        if not wait_for_frame(workflow, args.warmup_timeout):
            logger.warning(f"No frame within {args.warmup_timeout:.1f}s, attempting capture anyway")

        image = workflow.capture()
        if image is None:
            logger.error(workflow.last_error.message if workflow.last_error else "Capture failed")
            return 1

        path = image.save(args.output)
        workflow.accept()

    print(f"Saved {image.width}x{image.height} receipt ({image.size / 1024:.0f} KB) to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
