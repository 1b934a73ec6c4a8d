#!/usr/bin/env python3
"""
Voice Control Assistant - Main Entry Point

Usage:
    python main.py --variant cart --autostart
"""

import sys

from voice_control.application import main

if __name__ == "__main__":
    sys.exit(main())
