#!/usr/bin/env python3
"""Cadence habit assistant daemon."""

from __future__ import annotations

from cadence.assistant.daemon import run

if __name__ == "__main__":
    run()
