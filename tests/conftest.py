"""
Shared pytest fixtures for the algorithm expression engine tests.

Every test runs against default configuration: ALGOENGINE_* variables
are cleared and the project root points at an empty temporary directory,
so a stray algoengine.json in the working directory cannot leak in.
"""

import pytest

from algoengine.logging_config import reconfigure_log_directory
from algoengine.models import Algorithm
from algoengine.services.config_loader import ConfigLoader, reset_config_loader


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Reset the config singleton and environment for each test."""
    for env_var in ConfigLoader.CONFIG_KEY_TO_ENV.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.setenv("ALGOENGINE_PROJECT_ROOT", str(tmp_path))
    reset_config_loader()
    # Rebind the package stderr handler to this test's stderr; a handler
    # created under an earlier test's capsys would point at a closed stream.
    reconfigure_log_directory()
    yield
    reset_config_loader()


@pytest.fixture
def spacing_data():
    """Wire-format (camelCase) definition of a geometric spacing scale."""
    return {
        "id": "spacing-scale",
        "name": "Spacing Scale",
        "resolvedValueTypeId": "dimension",
        "variables": [
            {"id": "var_base", "name": "base", "type": "number", "defaultValue": "4"},
            {"id": "var_ratio", "name": "ratio", "type": "number", "defaultValue": "2"},
        ],
        "formulas": [
            {
                "id": "f_size",
                "name": "Size",
                "expressions": {"javascript": {"value": "size = base * Math.pow(ratio, n)"}},
            },
        ],
        "conditions": [
            {"id": "c_positive", "name": "Is Positive", "expression": "size > 0"},
        ],
        "steps": [
            {"type": "formula", "id": "f_size", "name": "Size"},
            {"type": "condition", "id": "c_positive", "name": "Is Positive"},
        ],
        "tokenGeneration": {
            "enabled": True,
            "iterationRange": {"start": 0, "end": 3, "step": 1},
        },
    }


@pytest.fixture
def spacing_algorithm(spacing_data):
    return Algorithm.model_validate(spacing_data)


@pytest.fixture
def make_algorithm():
    """Build an algorithm from formula sources run in order."""
    def build(*sources, variables=None, conditions=None, steps=None, **extra):
        formulas = [
            {
                "id": f"f{i}",
                "name": f"F{i}",
                "expressions": {"javascript": {"value": source}},
            }
            for i, source in enumerate(sources, start=1)
        ]
        data = {
            "id": extra.pop("id", "algo"),
            "name": extra.pop("name", "Algo"),
            "resolvedValueTypeId": extra.pop("resolvedValueTypeId", "dimension"),
            "variables": variables or [],
            "formulas": formulas,
            "conditions": conditions or [],
            "steps": steps if steps is not None else [
                {"type": "formula", "id": f["id"], "name": f["name"]} for f in formulas
            ],
        }
        data.update(extra)
        return Algorithm.model_validate(data)
    return build
