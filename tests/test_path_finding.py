"""
Test runner for Shortest study routes BDD scenarios.

Entry point for pytest-bdd to discover and run the Gherkin
scenarios from path_finding.feature.

Run with:
    pytest tests/test_path_finding.py -v
"""

from pytest_bdd import scenarios

# Import step definitions - this registers all steps
from step_defs.path_finding_steps import *

scenarios("../features/path_finding.feature")
