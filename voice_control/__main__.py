"""
Main entry point for the Voice Control Assistant.

This module allows the application to be run using:
    python -m voice_control
"""

import sys
from voice_control.application import main

if __name__ == "__main__":
    sys.exit(main())
