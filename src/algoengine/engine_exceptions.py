"""
Algorithm Engine Exception Hierarchy

Contains all exception classes raised by the expression engine.

Parsing and optimization never raise (they degrade to a flagged fallback
node or the unmodified tree); code generation and execution do.
"""

from typing import Optional


class AlgorithmEngineError(Exception):
    """
    Base exception for all algorithm engine operations.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class CodeGenerationError(AlgorithmEngineError):
    """
    Raised when an AST cannot be rendered back to source text.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.

    Code generation assumes a well-formed tree, so a node missing one of
    its required fields is reported rather than silently skipped.
    """
    pass


class EvaluationError(AlgorithmEngineError):
    """
    Raised when an expression cannot be evaluated against a scope.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class AlgorithmExecutionError(AlgorithmEngineError):
    """
    Raised when executing an algorithm for one iteration value fails.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.

    The partially built execution context is discarded; the error carries
    enough identification to point the author at the failing step.
    """

    def __init__(
        self,
        message: str,
        algorithm_id: Optional[str] = None,
        iteration_value: Optional[float] = None,
        step_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.algorithm_id = algorithm_id
        self.iteration_value = iteration_value
        self.step_name = step_name


class InvalidIterationRangeError(AlgorithmEngineError, ValueError):
    """
    Raised when a token generation iteration range cannot be enumerated.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


__all__ = [
    "AlgorithmEngineError",
    "CodeGenerationError",
    "EvaluationError",
    "AlgorithmExecutionError",
    "InvalidIterationRangeError",
]
