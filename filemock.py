#!/usr/bin/env python3
"""
filemock - file-driven HTTP mock server

This is a convenience wrapper that calls the modular implementation.
The actual implementation is in src/filemock/mock/cli.py

Usage:
    python filemock.py serve --mock-dir ./mocks --port 8080

For more information, see DESIGN.md
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from filemock.mock.cli import main

if __name__ == '__main__':
    main()
