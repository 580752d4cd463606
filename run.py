#!/usr/bin/env python3
"""Convenience runner for the ride replay tool.

Usage:
    python run.py fixes.csv [--heart-rate hr.csv] [--route-csv route.csv] [--events] [--verbose]

Logging is configured by the tool itself so ``--verbose`` takes effect.
"""
from ride_tracker.tools.replay_track import main

if __name__ == "__main__":
    raise SystemExit(main())
