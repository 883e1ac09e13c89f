"""
Tests for the pydantic algorithm models.
"""

import pytest
from pydantic import ValidationError

from algoengine.models import Algorithm, StepType, Variable, VariableType


class TestAlgorithmModels:

    def test_camel_case_input(self, spacing_algorithm):
        assert spacing_algorithm.resolved_value_type_id == "dimension"
        assert spacing_algorithm.variables[0].default_value == "4"
        assert spacing_algorithm.variables[0].type == VariableType.NUMBER
        assert spacing_algorithm.steps[1].type == StepType.CONDITION
        assert spacing_algorithm.token_generation.iteration_range.end == 3

    def test_snake_case_input(self):
        variable = Variable(id="v", name="x", type="number", default_value=3, mode_based=True)
        assert variable.default_value == 3
        assert variable.mode_based

    def test_wire_output_is_camel_case(self, spacing_algorithm):
        wire = spacing_algorithm.to_wire()
        assert wire["resolvedValueTypeId"] == "dimension"
        assert wire["tokenGeneration"]["iterationRange"] == {"start": 0, "end": 3, "step": 1}
        assert wire["variables"][0]["defaultValue"] == "4"
        assert "description" not in wire

    def test_wire_round_trip(self, spacing_algorithm):
        assert Algorithm.model_validate(spacing_algorithm.to_wire()) == spacing_algorithm

    def test_lookups(self, spacing_algorithm):
        assert spacing_algorithm.get_formula("f_size").name == "Size"
        assert spacing_algorithm.get_formula("missing") is None
        assert spacing_algorithm.get_condition("c_positive").expression == "size > 0"
        assert spacing_algorithm.formulas[0].expression_for("python") is None

    def test_unknown_variable_type_rejected(self):
        with pytest.raises(ValidationError):
            Variable(id="v", name="x", type="date")
