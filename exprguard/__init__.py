from .analyzer import (
    EmbeddedExpression,
    ExpressionReport,
    Position,
    analyze_expression,
    analyze_string,
    extract_expressions,
)

__all__ = [
    "EmbeddedExpression",
    "ExpressionReport",
    "Position",
    "analyze_expression",
    "analyze_string",
    "extract_expressions",
]
