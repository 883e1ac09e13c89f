"""
algoengine - Algorithm Expression Engine

Parses, validates, optimizes and evaluates the small expressions that
design-token algorithms are written in, and runs those algorithms over
an iteration range to produce token series.
"""

__version__ = "0.1.0"

from .engine_exceptions import (
    AlgorithmEngineError,
    AlgorithmExecutionError,
    CodeGenerationError,
    EvaluationError,
    InvalidIterationRangeError,
)
from .expressions import (
    ASTNode,
    calculate_complexity,
    calculate_complexity_score,
    extract_variables,
    generate_code,
    generate_javascript,
    optimize_expression,
    parse_expression,
    validate_ast,
)
from .models import (
    Algorithm,
    Condition,
    ExecutionContext,
    Formula,
    Step,
    TokenGenerationResult,
    Variable,
)
from .services.execution_service import (
    AlgorithmExecutionService,
    execute_algorithm,
    generate_tokens_for_algorithm,
    validate_algorithm,
)
from .services.dependency_service import (
    analyze_formula_dependencies,
    generate_execution_trace,
    validate_formula_dependencies,
)

__all__ = [
    "AlgorithmEngineError",
    "AlgorithmExecutionError",
    "CodeGenerationError",
    "EvaluationError",
    "InvalidIterationRangeError",
    "ASTNode",
    "calculate_complexity",
    "calculate_complexity_score",
    "extract_variables",
    "generate_code",
    "generate_javascript",
    "optimize_expression",
    "parse_expression",
    "validate_ast",
    "Algorithm",
    "Condition",
    "ExecutionContext",
    "Formula",
    "Step",
    "TokenGenerationResult",
    "Variable",
    "AlgorithmExecutionService",
    "execute_algorithm",
    "generate_tokens_for_algorithm",
    "validate_algorithm",
    "analyze_formula_dependencies",
    "generate_execution_trace",
    "validate_formula_dependencies",
]
