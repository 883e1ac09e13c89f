"""
Formula Dependency Service

Static analysis of an algorithm's steps: which variables each formula or
condition reads and assigns, which earlier formulas feed later ones,
undefined and unused variables. Also produces a step-by-step execution
trace for debugging that, unlike execute_algorithm, keeps going after a
step fails.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..engine_exceptions import AlgorithmEngineError
from ..expressions.ast_nodes import ASTNode, AssignmentNode, extract_variables
from ..expressions.parser import parse_expression
from ..expressions.validator import Severity
from ..logging_config import configure_logger_for_debug_trace
from ..models import Algorithm, Condition, Formula, StepType
from .execution_service import ITERATION_VARIABLE, AlgorithmExecutionService

logger = configure_logger_for_debug_trace(__name__)


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass
class DependencyNode:
    """A formula or condition with the variables it reads and assigns."""
    id: str
    name: str
    type: StepType
    inputs: List[str] = field(default_factory=list)
    outputs: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    step_index: Optional[int] = None


@dataclass
class DependencyEdge:
    """Producer formula -> consumer, through one assigned variable."""
    source: str
    target: str
    variable_name: str


@dataclass
class VariableUsage:
    formulas: List[str] = field(default_factory=list)
    conditions: List[str] = field(default_factory=list)
    is_system_variable: bool = False


@dataclass
class DependencyGraph:
    nodes: List[DependencyNode] = field(default_factory=list)
    edges: List[DependencyEdge] = field(default_factory=list)
    execution_order: List[str] = field(default_factory=list)
    variable_usage: Dict[str, VariableUsage] = field(default_factory=dict)

    def get_node(self, node_id: str) -> Optional[DependencyNode]:
        return next((n for n in self.nodes if n.id == node_id), None)


@dataclass
class DependencyIssue:
    """A problem found by validate_formula_dependencies."""
    severity: Severity
    message: str
    formula_id: Optional[str] = None
    condition_id: Optional[str] = None
    variable_name: Optional[str] = None

    def __str__(self) -> str:
        if self.severity == Severity.WARNING:
            return f"Warning: {self.message}"
        return self.message


@dataclass
class TraceStep:
    step_id: str
    step_name: str
    step_type: Optional[StepType]
    input_values: Dict[str, Any]
    output_value: Any = None
    error: Optional[str] = None
    execution_time_ms: float = 0.0
    dependencies: List[str] = field(default_factory=list)


@dataclass
class ExecutionTrace:
    steps: List[TraceStep] = field(default_factory=list)
    final_result: Any = None
    errors: List[str] = field(default_factory=list)
    execution_time_ms: float = 0.0


# ============================================================
# ANALYSIS
# ============================================================

def _source_for(formula: Formula, language: str) -> str:
    expression = formula.expression_for(language)
    return expression.value if expression is not None else ""


def _inputs_and_outputs(source: str):
    node: ASTNode = parse_expression(source)
    if node.metadata is not None and node.metadata.validation_errors:
        return [], []
    outputs = [node.variable_name] if isinstance(node, AssignmentNode) and node.variable_name else []
    return extract_variables(node), outputs


def analyze_formula_dependencies(
    algorithm: Algorithm,
    language: str = "javascript",
) -> DependencyGraph:
    """
    Build the dependency graph of an algorithm.

    Inputs are the variables an expression reads; outputs are its
    assignment target. An edge links a formula to a later step reading a
    variable that formula assigns. Expressions that fail to parse
    contribute no inputs or outputs.
    """
    step_index: Dict[str, int] = {}
    for index, step in enumerate(algorithm.steps):
        step_index.setdefault(step.id, index)

    graph = DependencyGraph(execution_order=[step.id for step in algorithm.steps])
    aliases = {v.id: v.name for v in algorithm.variables if v.id and v.name}
    for variable in algorithm.variables:
        graph.variable_usage[variable.name] = VariableUsage()
    graph.variable_usage[ITERATION_VARIABLE] = VariableUsage(is_system_variable=True)

    for formula in algorithm.formulas:
        inputs, outputs = _inputs_and_outputs(_source_for(formula, language))
        graph.nodes.append(DependencyNode(
            id=formula.id, name=formula.name, type=StepType.FORMULA,
            inputs=inputs, outputs=outputs, step_index=step_index.get(formula.id),
        ))

    for condition in algorithm.conditions:
        inputs, _ = _inputs_and_outputs(condition.expression)
        graph.nodes.append(DependencyNode(
            id=condition.id, name=condition.name, type=StepType.CONDITION,
            inputs=inputs, step_index=step_index.get(condition.id),
        ))

    for node in graph.nodes:
        for name in node.inputs:
            usage = graph.variable_usage.get(aliases.get(name, name))
            if usage is not None:
                target = usage.formulas if node.type == StepType.FORMULA else usage.conditions
                if node.id not in target:
                    target.append(node.id)

    for node in graph.nodes:
        for name in node.inputs:
            for producer in graph.nodes:
                if (producer.type != StepType.FORMULA
                        or producer is node
                        or name not in producer.outputs
                        or producer.step_index is None
                        or node.step_index is None
                        or producer.step_index >= node.step_index):
                    continue
                graph.edges.append(DependencyEdge(producer.id, node.id, name))
                if producer.id not in node.dependencies:
                    node.dependencies.append(producer.id)

    return graph


def detect_circular_dependencies(graph: DependencyGraph) -> List[List[str]]:
    """Cycles in the node dependency relation, each as a list of node ids."""
    cycles: List[List[str]] = []
    visited = set()
    on_stack = set()

    def visit(node_id: str, path: List[str]) -> None:
        if node_id in on_stack:
            cycles.append(path[path.index(node_id):])
            return
        if node_id in visited:
            return
        visited.add(node_id)
        on_stack.add(node_id)
        node = graph.get_node(node_id)
        if node is not None:
            for dependency in node.dependencies:
                visit(dependency, path + [node_id])
        on_stack.discard(node_id)

    for node in graph.nodes:
        if node.id not in visited:
            visit(node.id, [])
    return cycles


def validate_formula_dependencies(
    algorithm: Algorithm,
    language: str = "javascript",
) -> List[DependencyIssue]:
    """Undefined variables and cycles (errors), unused variables (warnings)."""
    issues: List[DependencyIssue] = []
    graph = analyze_formula_dependencies(algorithm, language)

    declared = {v.name for v in algorithm.variables} | {v.id for v in algorithm.variables}
    assigned = {name for node in graph.nodes for name in node.outputs}

    for node in graph.nodes:
        for name in node.inputs:
            if name in declared or name == ITERATION_VARIABLE or name in assigned:
                continue
            issues.append(DependencyIssue(
                Severity.ERROR,
                f"Undefined variable '{name}' used in {node.type.value} '{node.name}'",
                formula_id=node.id if node.type == StepType.FORMULA else None,
                condition_id=node.id if node.type == StepType.CONDITION else None,
                variable_name=name,
            ))

    for cycle in detect_circular_dependencies(graph):
        issues.append(DependencyIssue(
            Severity.ERROR,
            f"Circular dependency detected: {' -> '.join(cycle)}",
            formula_id=cycle[0],
        ))

    for variable in algorithm.variables:
        usage = graph.variable_usage.get(variable.name)
        if usage is None or (not usage.formulas and not usage.conditions):
            issues.append(DependencyIssue(
                Severity.WARNING,
                f"Variable '{variable.name}' is defined but never used",
                variable_name=variable.name,
            ))

    return issues


# ============================================================
# EXECUTION TRACE
# ============================================================

def generate_execution_trace(
    algorithm: Algorithm,
    iteration_value: Any = 0,
    context: Optional[Dict[str, Any]] = None,
    service: Optional[AlgorithmExecutionService] = None,
) -> ExecutionTrace:
    """
    Run the steps in order, recording each one.

    A failing step is recorded with its error and the run continues with
    the scope as it was before that step.
    """
    service = service or AlgorithmExecutionService()
    language = service.config.expression_language
    started = time.perf_counter()
    trace = ExecutionTrace()
    scope = service.build_scope(algorithm, iteration_value, context)
    builtin_names = ("Math", "Array")

    for index, step in enumerate(algorithm.steps):
        step_started = time.perf_counter()
        snapshot = {k: v for k, v in scope.items() if k not in builtin_names}

        target: Optional[Any] = None
        if step.type == StepType.FORMULA:
            target = algorithm.get_formula(step.id)
            source = _source_for(target, language) if isinstance(target, Formula) else ""
        else:
            target = algorithm.get_condition(step.id)
            source = target.expression if isinstance(target, Condition) else ""

        record = TraceStep(
            step_id=step.id,
            step_name=step.name,
            step_type=step.type,
            input_values=snapshot,
            dependencies=_inputs_and_outputs(source)[0] if source else [],
        )

        try:
            ran, result = service.run_step(algorithm, step, scope)
            if ran:
                record.output_value = result
                if step.type == StepType.FORMULA:
                    trace.final_result = result
        except AlgorithmEngineError as e:
            record.error = str(e)
            trace.errors.append(f"Step {index + 1} ({step.name}): {e}")
            logger.debug(f"Trace step {index + 1} failed: {e}")

        record.execution_time_ms = (time.perf_counter() - step_started) * 1000
        trace.steps.append(record)

    trace.execution_time_ms = (time.perf_counter() - started) * 1000
    return trace
