#!/usr/bin/env python3
"""
Launcher para DWC Player
Este archivo es el punto de entrada para PyInstaller
"""

import sys
from dwc_player.main import main

if __name__ == "__main__":
    sys.exit(main())
