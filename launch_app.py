#!/usr/bin/env python3
"""Receipt Capture Application Launcher

This script properly sets up the Python path and launches the expense attachment window.

Usage:
    python launch_app.py                      # Launch with configs/default.yaml (OpenCV camera 0)
    python launch_app.py --backend sim        # Launch with the simulated camera
    python launch_app.py --source rtsp://...  # Use a network camera
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

if __name__ == "__main__":
    from ui.main_window import main
    sys.exit(main())
