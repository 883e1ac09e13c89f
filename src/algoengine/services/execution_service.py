"""
Algorithm Execution Service

Runs an algorithm's steps for one iteration value, generates token series
over an iteration range, and checks algorithm definitions for structural
problems.

Each execution builds its own VariableScope; nothing is shared between
calls. Within a batch, a failing iteration is recorded as an error entry
and the remaining iterations run unaffected.
"""

import json
import math
import re
from typing import Any, Dict, List, Optional, Tuple

from ..engine_exceptions import (
    AlgorithmEngineError,
    AlgorithmExecutionError,
    InvalidIterationRangeError,
)
from ..expressions.ast_nodes import ASTNode, AssignmentNode, is_number, node_from_dict
from ..expressions.builtins import format_number, format_value, get_builtin_tables, normalize_number
from ..expressions.evaluator import Evaluator, VariableScope
from ..expressions.parser import parse_expression
from ..expressions.validator import ASTValidator
from ..logging_config import configure_logger_for_debug_trace
from ..models import (
    Algorithm,
    Condition,
    ExecutionContext,
    Formula,
    IterationRange,
    Step,
    StepType,
    TokenGenerationResult,
    TokenValue,
    Variable,
    VariableType,
)
from .config_loader import EngineConfig, get_engine_config

logger = configure_logger_for_debug_trace(__name__)

ITERATION_VARIABLE = "n"
SIZE_VALUE_TYPES = frozenset({"dimension", "gap", "font-size"})
LANGUAGE_LABELS = {"javascript": "JavaScript"}


# ============================================================
# VALUE HELPERS
# ============================================================

def _to_number(value: Any) -> Optional[float]:
    """Numeric reading of a value, or None when it has none."""
    if isinstance(value, bool):
        return int(value)
    if is_number(value):
        return None if isinstance(value, float) and math.isnan(value) else value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            number = float(text)
        except ValueError:
            return None
        return None if math.isnan(number) else normalize_number(number)
    return None


def parse_variable_value(value: Any, variable_type: Optional[VariableType]) -> Any:
    """
    Convert a variable's authored value to its runtime value.

    number: numeric parse, 0 when unparsable; string: bracketed text is
    read as a JSON list when it parses; boolean: "true" or "1"; color:
    kept as text.
    """
    if variable_type == VariableType.NUMBER:
        number = _to_number(value)
        return number if number is not None else 0

    if variable_type == VariableType.STRING:
        text = format_value(value)
        stripped = text.strip()
        if stripped.startswith("[") and stripped.endswith("]"):
            try:
                return json.loads(stripped)
            except json.JSONDecodeError:
                return text
        return text

    if variable_type == VariableType.BOOLEAN:
        if isinstance(value, bool):
            return value
        return format_value(value) in ("true", "1")

    if variable_type == VariableType.COLOR:
        return format_value(value)

    return value


def format_value_for_token_type(value: Any, resolved_value_type_id: str) -> str:
    """Render an execution result as a token value string."""
    if value is None:
        return ""

    if resolved_value_type_id in SIZE_VALUE_TYPES:
        number = _to_number(value)
        if number is not None:
            return format_number(number)
        return format_value(value)

    if resolved_value_type_id == "color":
        if isinstance(value, str) and (value.startswith("#") or value.startswith("rgb")):
            return value
        number = _to_number(value)
        if number is not None and number >= 0 and float(number).is_integer():
            return f"#{int(number):06x}"
        return format_value(value)

    return format_value(value)


def generate_token_display_name(algorithm: Algorithm, iteration_value: Any) -> str:
    base_name = re.sub(r"\s+", "-", algorithm.name).lower()
    if iteration_value < 0:
        return f"{base_name}-minus-{format_number(abs(iteration_value))}"
    return f"{base_name}-{format_number(iteration_value)}"


def get_last_formula_step_name(algorithm: Algorithm) -> str:
    for step in reversed(algorithm.steps):
        if step.type == StepType.FORMULA:
            return step.name
    return "Unknown"


def iteration_values(iteration_range: IterationRange, max_iterations: int) -> List[Any]:
    """
    Values start + k * step for k = 0, 1, ... while they stay <= end.

    Raises:
        InvalidIterationRangeError: non-positive step, or more values than max_iterations
    """
    start, end, step = iteration_range.start, iteration_range.end, iteration_range.step
    if not (step > 0) or not math.isfinite(step):
        raise InvalidIterationRangeError(f"Iteration step must be a positive number, got {step}")
    if not (math.isfinite(start) and math.isfinite(end)):
        raise InvalidIterationRangeError("Iteration range bounds must be finite numbers")
    if end < start:
        return []

    count = math.floor((end - start) / step) + 1
    if count > max_iterations:
        raise InvalidIterationRangeError(
            f"Iteration range produces {count} values; the limit is {max_iterations}"
        )

    values = []
    for k in range(count):
        value = normalize_number(start + k * step)
        if value > end:
            break
        values.append(value)
    return values


# ============================================================
# EXECUTION SERVICE
# ============================================================

class AlgorithmExecutionService:
    """
    Executes algorithms against a tree-walking evaluator.

    ::: This is-in-layer Service-Layer.
    ::: This is a executor.
    ::: This is stateless.

    Usage:
        service = AlgorithmExecutionService()
        context = service.execute_algorithm(algorithm, 3)
        print(context.final_result)
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_engine_config()

    # --------------------------------------------------------
    # Scope
    # --------------------------------------------------------

    def resolve_variable_value(
        self,
        variable: Variable,
        mode_context: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Runtime value of a variable, using the active mode's value when there is one."""
        if variable.mode_based and variable.dimension_id and variable.values_by_mode and mode_context:
            mode_id = mode_context.get(variable.dimension_id)
            if mode_id and variable.values_by_mode.get(mode_id) not in (None, ""):
                logger.debug(f"Using mode '{mode_id}' value for variable '{variable.name}'")
                return parse_variable_value(variable.values_by_mode[mode_id], variable.type)
            logger.debug(
                f"No value for mode '{mode_id}' on variable '{variable.name}', using default"
            )
        return parse_variable_value(variable.default_value, variable.type)

    def build_scope(
        self,
        algorithm: Algorithm,
        iteration_value: Any,
        context: Optional[Dict[str, Any]] = None,
        mode_context: Optional[Dict[str, str]] = None,
    ) -> VariableScope:
        """
        Fresh scope for one execution.

        Variables are bound by name with their ids as aliases; caller
        context overrides variable values, the iteration value and the
        builtin tables override everything.
        """
        scope = VariableScope()
        for variable in algorithm.variables:
            key = variable.name or variable.id
            if not key:
                continue
            scope[key] = self.resolve_variable_value(variable, mode_context)
            if variable.name and variable.id:
                scope.add_alias(variable.id, variable.name)

        for key, value in (context or {}).items():
            if key != ITERATION_VARIABLE:
                scope[key] = value

        scope[ITERATION_VARIABLE] = iteration_value
        for namespace, table in get_builtin_tables().items():
            scope[namespace] = table
        return scope

    # --------------------------------------------------------
    # Steps
    # --------------------------------------------------------

    def formula_ast(self, formula: Formula) -> ASTNode:
        """
        The formula's tree: a stored AST when present, else parsed source.

        Raises:
            AlgorithmEngineError: on parse errors or a stored AST with errors
        """
        expression = formula.expression_for(self.config.expression_language)
        if expression is None:
            raise AlgorithmEngineError(
                f"No {self.config.expression_language} expression for formula '{formula.name}'"
            )

        if expression.ast is not None:
            try:
                node = node_from_dict(expression.ast)
            except (ValueError, TypeError, KeyError) as e:
                raise AlgorithmEngineError(f"Stored AST is unreadable: {e}") from e
            result = ASTValidator().validate(node)
            for warning in result.warnings:
                logger.debug(f"Formula '{formula.name}': {warning}")
            if not result.valid:
                raise AlgorithmEngineError(
                    "Stored AST is invalid: " + "; ".join(str(e) for e in result.errors)
                )
            return node

        return self._parse_checked(expression.value)

    @staticmethod
    def _parse_checked(source: str) -> ASTNode:
        node = parse_expression(source)
        if node.metadata is not None and node.metadata.validation_errors:
            raise AlgorithmEngineError("; ".join(node.metadata.validation_errors))
        return node

    def run_formula(self, formula: Formula, scope: VariableScope) -> Any:
        """
        Evaluate a formula; an assignment root writes into scope.

        Raises:
            AlgorithmEngineError: when the formula cannot be parsed or evaluated
        """
        node = self.formula_ast(formula)
        result = Evaluator(scope).evaluate(node)
        if isinstance(node, AssignmentNode):
            logger.debug(f"Formula '{formula.name}' assigned {node.variable_name} = {result!r}")
        return result

    def run_condition(self, condition: Condition, scope: VariableScope) -> bool:
        node = self._parse_checked(condition.expression)
        return bool(Evaluator(scope).evaluate(node))

    def run_step(
        self,
        algorithm: Algorithm,
        step: Step,
        scope: VariableScope,
    ) -> Tuple[bool, Any]:
        """
        Run one step against scope.

        Returns:
            (ran, result): ran is False when the step's target is missing

        Raises:
            AlgorithmExecutionError: naming the failing formula or condition
        """
        if step.type == StepType.FORMULA:
            formula = algorithm.get_formula(step.id)
            if formula is None:
                logger.warning(f"Step '{step.name}': formula '{step.id}' not found, skipping")
                return False, None
            try:
                return True, self.run_formula(formula, scope)
            except (AlgorithmEngineError, RecursionError) as e:
                raise AlgorithmExecutionError(
                    f"Formula execution failed for {formula.name}: {e}",
                    algorithm_id=algorithm.id,
                    iteration_value=scope.get(ITERATION_VARIABLE),
                    step_name=formula.name,
                ) from e

        if step.type == StepType.CONDITION:
            condition = algorithm.get_condition(step.id)
            if condition is None:
                logger.warning(f"Step '{step.name}': condition '{step.id}' not found, skipping")
                return False, None
            try:
                return True, self.run_condition(condition, scope)
            except (AlgorithmEngineError, RecursionError) as e:
                raise AlgorithmExecutionError(
                    f"Condition evaluation failed for {condition.name}: {e}",
                    algorithm_id=algorithm.id,
                    iteration_value=scope.get(ITERATION_VARIABLE),
                    step_name=condition.name,
                ) from e

        logger.warning(f"Step '{step.name}' has unknown type {step.type!r}, skipping")
        return False, None

    @staticmethod
    def step_target_name(algorithm: Algorithm, step: Step) -> str:
        """Name of the formula or condition a step points at (step name if missing)."""
        if step.type == StepType.FORMULA:
            target = algorithm.get_formula(step.id)
        elif step.type == StepType.CONDITION:
            target = algorithm.get_condition(step.id)
        else:
            target = None
        return target.name if target is not None else step.name

    # --------------------------------------------------------
    # Execution
    # --------------------------------------------------------

    def execute_algorithm(
        self,
        algorithm: Algorithm,
        iteration_value: Any,
        context: Optional[Dict[str, Any]] = None,
        mode_context: Optional[Dict[str, str]] = None,
    ) -> ExecutionContext:
        """
        Run every step in order for one iteration value.

        Returns:
            ExecutionContext with final bindings, per-step results and the
            value of the last formula step

        Raises:
            AlgorithmExecutionError: on the first failing step
        """
        logger.debug(f"Executing algorithm '{algorithm.id}' for n={iteration_value}")
        scope = self.build_scope(algorithm, iteration_value, context, mode_context)
        results: Dict[str, Any] = {}
        final_result: Any = None

        for step in algorithm.steps:
            ran, result = self.run_step(algorithm, step, scope)
            if not ran:
                continue
            results[self.step_target_name(algorithm, step)] = result
            if step.type == StepType.FORMULA:
                final_result = result

        variables = {
            key: value for key, value in scope.items()
            if key not in get_builtin_tables()
        }
        return ExecutionContext(
            variables=variables,
            results=results,
            iteration_value=iteration_value,
            final_result=final_result,
        )

    def generate_tokens_for_algorithm(
        self,
        algorithm: Algorithm,
        mode_context: Optional[Dict[str, str]] = None,
    ) -> List[TokenGenerationResult]:
        """
        Execute the algorithm once per iteration value of its token range.

        Returns:
            One entry per iteration value; failed iterations carry an error

        Raises:
            InvalidIterationRangeError: when the range cannot be enumerated
        """
        generation = algorithm.token_generation
        if generation is None or not generation.enabled:
            return []

        values = iteration_values(generation.iteration_range, self.config.max_iterations)
        formula_name = get_last_formula_step_name(algorithm)
        tokens: List[TokenGenerationResult] = []

        for value in values:
            token_id = f"{algorithm.id}-{format_number(value)}"
            try:
                context = self.execute_algorithm(algorithm, value, mode_context=mode_context)
            except AlgorithmExecutionError as e:
                logger.warning(f"Error generating token for iteration {value}: {e}")
                tokens.append(TokenGenerationResult(
                    token_id=token_id,
                    display_name=f"Error-{format_number(value)}",
                    value=TokenValue(value=""),
                    iteration_value=value,
                    formula_name="Error",
                    error=str(e),
                ))
                continue

            tokens.append(TokenGenerationResult(
                token_id=token_id,
                display_name=generate_token_display_name(algorithm, value),
                value=TokenValue(value=format_value_for_token_type(
                    context.final_result, algorithm.resolved_value_type_id
                )),
                iteration_value=value,
                formula_name=formula_name,
            ))

        logger.debug(
            f"Generated {len(tokens)} tokens for '{algorithm.id}' "
            f"({sum(1 for t in tokens if t.error)} errors)"
        )
        return tokens

    # --------------------------------------------------------
    # Validation
    # --------------------------------------------------------

    def validate_algorithm(self, algorithm: Algorithm) -> List[str]:
        """Structural problems in an algorithm definition (empty when none)."""
        errors: List[str] = []
        language = self.config.expression_language

        if not algorithm.id:
            errors.append("Algorithm ID is required")
        if not algorithm.name:
            errors.append("Algorithm name is required")
        if not algorithm.resolved_value_type_id:
            errors.append("Resolved value type ID is required")

        for index, variable in enumerate(algorithm.variables):
            if not variable.id:
                errors.append(f"Variable {index}: ID is required")
            if not variable.name:
                errors.append(f"Variable {index}: Name is required")
            if not variable.type:
                errors.append(f"Variable {index}: Type is required")

        for index, formula in enumerate(algorithm.formulas):
            if not formula.id:
                errors.append(f"Formula {index}: ID is required")
            if not formula.name:
                errors.append(f"Formula {index}: Name is required")
            expression = formula.expression_for(language)
            if expression is None or not expression.value:
                errors.append(f"Formula {index}: {LANGUAGE_LABELS.get(language, language.capitalize())} expression is required")

        for index, step in enumerate(algorithm.steps):
            if not step.type:
                errors.append(f"Step {index}: Type is required")
            if not step.id:
                errors.append(f"Step {index}: ID is required")
            if not step.name:
                errors.append(f"Step {index}: Name is required")

            if step.type == StepType.FORMULA and algorithm.get_formula(step.id) is None:
                errors.append(f"Step {index}: Referenced formula '{step.id}' not found")
            elif step.type == StepType.CONDITION and algorithm.get_condition(step.id) is None:
                errors.append(f"Step {index}: Referenced condition '{step.id}' not found")

        return errors


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def execute_algorithm(
    algorithm: Algorithm,
    iteration_value: Any,
    context: Optional[Dict[str, Any]] = None,
    mode_context: Optional[Dict[str, str]] = None,
) -> ExecutionContext:
    return AlgorithmExecutionService().execute_algorithm(
        algorithm, iteration_value, context, mode_context
    )


def generate_tokens_for_algorithm(
    algorithm: Algorithm,
    mode_context: Optional[Dict[str, str]] = None,
) -> List[TokenGenerationResult]:
    return AlgorithmExecutionService().generate_tokens_for_algorithm(algorithm, mode_context)


def validate_algorithm(algorithm: Algorithm) -> List[str]:
    return AlgorithmExecutionService().validate_algorithm(algorithm)
