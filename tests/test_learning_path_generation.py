"""
Test runner for Learning path generation BDD scenarios.

Entry point for pytest-bdd to discover and run the Gherkin
scenarios from learning_path_generation.feature.

Run with:
    pytest tests/test_learning_path_generation.py -v
"""

from pytest_bdd import scenarios

# Import step definitions - this registers all steps
from step_defs.learning_path_steps import *

scenarios("../features/learning_path_generation.feature")
