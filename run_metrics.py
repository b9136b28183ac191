"""Convenience shim to run the organization metrics report."""

from __future__ import annotations

import sys

from activity_metrics.pipeline.runner import main as metrics_main


if __name__ == "__main__":
    metrics_main(sys.argv[1:])
