"""
Test runner for Knowledge maps BDD scenarios.

Entry point for pytest-bdd to discover and run the Gherkin
scenarios from knowledge_maps.feature.

Run with:
    pytest tests/test_knowledge_maps.py -v
"""

from pytest_bdd import scenarios

# Import step definitions - this registers all steps
from step_defs.knowledge_map_steps import *

scenarios("../features/knowledge_maps.feature")
