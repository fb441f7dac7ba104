from .console_reporter import report_console
from .json_reporter import report_json

__all__ = ["report_console", "report_json"]
