"""
Test runner for Concept graph store BDD scenarios.

Entry point for pytest-bdd to discover and run the Gherkin
scenarios from graph_store.feature.

Run with:
    pytest tests/test_graph_store.py -v
"""

from pytest_bdd import scenarios

# Import step definitions - this registers all steps
from step_defs.graph_store_steps import *

scenarios("../features/graph_store.feature")
