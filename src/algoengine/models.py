"""
Data models for the Algorithm Expression Engine

Pydantic models for algorithm definitions (as authored in the editor) and
for the records the engine produces from them. Every model accepts either
the camelCase wire names or the snake_case attribute names and serializes
back to camelCase with model_dump(by_alias=True).
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Scalar = Union[bool, int, float, str]
Number = Union[int, float]


# ============================================================================
# Enums
# ============================================================================

class VariableType(str, Enum):
    """Declared type of an algorithm variable"""
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    COLOR = "color"


class StepType(str, Enum):
    """What a step refers to"""
    FORMULA = "formula"
    CONDITION = "condition"


class EngineModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ============================================================================
# Algorithm definition
# ============================================================================

class Variable(EngineModel):
    """Named, typed input with a default value (optionally per mode)"""
    id: str = ""
    name: str = ""
    type: Optional[VariableType] = None
    default_value: Scalar = ""
    description: Optional[str] = None

    # Mode-based variables pick their value from the active mode of a dimension
    mode_based: bool = False
    dimension_id: Optional[str] = None
    values_by_mode: Optional[Dict[str, Scalar]] = None


class FormulaExpression(EngineModel):
    """Source text of a formula in one language, plus an optional stored AST"""
    value: str = ""
    ast: Optional[Dict[str, Any]] = None


class Formula(EngineModel):
    """Named expression, keyed by language"""
    id: str = ""
    name: str = ""
    description: Optional[str] = None
    expressions: Dict[str, FormulaExpression] = Field(default_factory=dict)

    def expression_for(self, language: str = "javascript") -> Optional[FormulaExpression]:
        return self.expressions.get(language)


class Condition(EngineModel):
    """Named boolean expression"""
    id: str = ""
    name: str = ""
    expression: str = ""


class Step(EngineModel):
    """Ordered reference to a formula or condition"""
    type: Optional[StepType] = None
    id: str = ""
    name: str = ""


class IterationRange(EngineModel):
    start: Number = 0
    end: Number = 0
    step: Number = 1


class TokenGeneration(EngineModel):
    enabled: bool = False
    iteration_range: IterationRange = Field(default_factory=IterationRange)


class Algorithm(EngineModel):
    """Variables, formulas and conditions plus the steps that order them"""
    id: str = ""
    name: str = ""
    description: Optional[str] = None
    resolved_value_type_id: str = ""
    variables: List[Variable] = Field(default_factory=list)
    formulas: List[Formula] = Field(default_factory=list)
    conditions: List[Condition] = Field(default_factory=list)
    steps: List[Step] = Field(default_factory=list)
    token_generation: Optional[TokenGeneration] = None

    def get_formula(self, formula_id: str) -> Optional[Formula]:
        return next((f for f in self.formulas if f.id == formula_id), None)

    def get_condition(self, condition_id: str) -> Optional[Condition]:
        return next((c for c in self.conditions if c.id == condition_id), None)


# ============================================================================
# Execution records
# ============================================================================

class ExecutionContext(EngineModel):
    """Outcome of one execution: final bindings, per-step results, last formula value"""
    variables: Dict[str, Any] = Field(default_factory=dict)
    results: Dict[str, Any] = Field(default_factory=dict)
    iteration_value: Number = 0
    final_result: Any = None


class TokenValue(EngineModel):
    value: str = ""


class TokenGenerationResult(EngineModel):
    """One generated token (or the error entry standing in for it)"""
    token_id: str
    display_name: str
    value: TokenValue = Field(default_factory=TokenValue)
    iteration_value: Number
    formula_name: str
    error: Optional[str] = None
