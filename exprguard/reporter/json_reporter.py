"""
JSON reporter: outputs expression diagnostics as structured JSON for programmatic use.
"""

import json
import logging

from exprguard.analyzer import ExpressionReport

logger = logging.getLogger(__name__)


def report_json(reports: list[ExpressionReport]) -> str:
    """
    Format analysis results as a JSON string.

    Args:
        reports: One ExpressionReport per analyzed expression.

    Returns:
        A JSON string with every expression and its diagnostics.
    """
    total = sum(len(r.errors) for r in reports)
    data = {
        "total": total,
        "reports": [
            {
                "expression": r.source,
                "line": r.position.line,
                "column": r.position.column,
                "untrusted_paths": r.untrusted_paths,
                "errors": [
                    {
                        "kind": e.kind.value,
                        "message": e.message,
                        "line": e.line,
                        "column": e.column,
                        "offset": e.offset,
                        "paths": list(e.paths),
                    }
                    for e in r.errors
                ],
            }
            for r in reports
        ],
    }
    output = json.dumps(data, indent=2)
    logger.info("JSON report: %d diagnostic(s), %d bytes", total, len(output))
    return output
