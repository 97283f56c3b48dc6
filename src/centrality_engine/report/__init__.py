"""Report module - Text reports and CSV export"""

from .generator import ReportGenerator, export_csv, ranking_frame

__all__ = [
    "ReportGenerator",
    "export_csv",
    "ranking_frame",
]
