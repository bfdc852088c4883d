"""Entry point for `python -m kuberecycle`.

Usage:
    python -m kuberecycle
"""

from __future__ import annotations

from kuberecycle.app import run

run()
