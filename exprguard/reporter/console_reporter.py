"""
Console reporter: prints expression diagnostics to the terminal with colors.
"""

from exprguard.analyzer import ExpressionReport
from exprguard.expressions.errors import ErrorKind


# ANSI color codes for terminal output
COLORS = {
    ErrorKind.UNTRUSTED_INPUT:  "\033[91m",  # bright red
    ErrorKind.UNTRUSTED_OBJECT: "\033[31m",  # red
    ErrorKind.SEMANTIC:         "\033[33m",  # yellow
    ErrorKind.SYNTAX:           "\033[36m",  # cyan
    ErrorKind.LEXICAL:          "\033[36m",  # cyan
}
BOLD = "\033[1m"
RESET = "\033[0m"

_KIND_ORDER = [
    ErrorKind.UNTRUSTED_INPUT,
    ErrorKind.UNTRUSTED_OBJECT,
    ErrorKind.SEMANTIC,
    ErrorKind.SYNTAX,
    ErrorKind.LEXICAL,
]


def _kind_badge(kind: ErrorKind) -> str:
    color = COLORS.get(kind, "")
    label = kind.value.upper()
    return f"{color}{BOLD}[{label:16s}]{RESET}"


def report_console(reports: list[ExpressionReport], label: str = "") -> str:
    """
    Format analysis results as a colored console report.

    Args:
        reports: One ExpressionReport per analyzed expression.
        label: Optional label for the report header (e.g. the input source).

    Returns:
        The formatted report string (also prints it).
    """
    lines = []
    errors = [(r, e) for r in reports for e in r.errors]

    # Header
    lines.append("")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append(f"{BOLD}  Expression Taint Report{RESET}")
    if label:
        lines.append(f"  Source: {label}")
    lines.append(f"  Expressions checked: {len(reports)}")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    if not errors:
        lines.append("  ✅ No untrusted input or expression errors found!")
        lines.append("")
        report = "\n".join(lines)
        print(report)
        return report

    # Summary counts
    counts = {}
    for _, e in errors:
        counts[e.kind] = counts.get(e.kind, 0) + 1

    lines.append(f"  Found {BOLD}{len(errors)}{RESET} issue(s):")
    for kind in _KIND_ORDER:
        if kind in counts:
            lines.append(f"    {_kind_badge(kind)} × {counts[kind]}")
    lines.append("")
    lines.append(f"  {'-' * 56}")

    # Individual diagnostics
    for i, (r, e) in enumerate(errors, 1):
        lines.append("")
        lines.append(f"  {_kind_badge(e.kind)} #{i}: {BOLD}${{{{ {r.source} }}}}{RESET}")
        lines.append(f"    At:    line {e.line}, column {e.column}")
        if e.paths:
            lines.append(f"    Paths: {', '.join(e.paths)}")
        lines.append("")
        lines.append(f"    {e.message}")

    lines.append("")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    report = "\n".join(lines)
    print(report)
    return report
