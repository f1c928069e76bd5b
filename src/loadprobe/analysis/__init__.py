from __future__ import annotations

from loadprobe.analysis.compare import Regression, compare_per_second, compare_reports

__all__ = ["Regression", "compare_per_second", "compare_reports"]
