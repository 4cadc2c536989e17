"""
Force-directed layout for map-sized graphs.

Simulation per iteration:
    1. Repulsion between every unordered node pair (repulsion / distance²)
    2. Spring attraction along every edge (distance * attraction)
    3. Velocity clamp, move, clamp into the canvas, damp

Cost is O(iterations × n²). Callers pass exactly the subset to lay out
(for example the members of one knowledge map), not a whole owner graph.
"""

import logging
import math
import random
from typing import Dict, Mapping, Optional

from ..budget import OperationBudget
from ..config import LayoutSettings
from ..errors import GraphValidationError
from ..models import GraphSnapshot, Position


logger = logging.getLogger(__name__)


class _Body:
    """Mutable simulation state for one node."""

    __slots__ = ("x", "y", "vx", "vy")

    def __init__(self, x: float, y: float):
        self.x = x
        self.y = y
        self.vx = 0.0
        self.vy = 0.0


class ForceDirectedLayout:
    """
    Iterative force-directed position solver.

    Usage:
        layout = ForceDirectedLayout(LayoutSettings(seed=7))
        positions = layout.generate_layout(graph, width=800, height=600)
    """

    def __init__(self, settings: Optional[LayoutSettings] = None):
        self.settings = settings or LayoutSettings()

    def generate_layout(
        self,
        graph: GraphSnapshot,
        width: Optional[float] = None,
        height: Optional[float] = None,
        iterations: Optional[int] = None,
        seed: Optional[int] = None,
        initial_positions: Optional[Mapping[str, Position]] = None,
        budget: Optional[OperationBudget] = None,
    ) -> Dict[str, Position]:
        """
        Compute a position for every node of the graph.

        Args:
            graph: Nodes and edges to lay out; edges to unknown nodes are ignored
            width, height: Canvas size (defaults from settings)
            iterations: Simulation steps (defaults from settings)
            seed: Seed for random initial positions (defaults from settings)
            initial_positions: Fixed starting positions, clamped into the canvas
            budget: Checked once per iteration

        Returns:
            {node_id: Position}, every position inside [0, width] × [0, height]

        Raises:
            GraphValidationError: Non-positive width, height or iterations
            OperationCancelledError: The budget ran out
        """
        s = self.settings
        width = s.width if width is None else width
        height = s.height if height is None else height
        iterations = s.iterations if iterations is None else iterations
        seed = s.seed if seed is None else seed

        if width <= 0 or height <= 0:
            raise GraphValidationError(f"Layout canvas must be positive, got {width}x{height}")
        if iterations <= 0:
            raise GraphValidationError(f"iterations must be positive, got {iterations}")

        rng = random.Random(seed)
        initial_positions = initial_positions or {}

        bodies: Dict[str, _Body] = {}
        for node in graph.nodes:
            start = initial_positions.get(node.id)
            if start is not None:
                bodies[node.id] = _Body(_clamp(start.x, width), _clamp(start.y, height))
            else:
                bodies[node.id] = _Body(rng.random() * width, rng.random() * height)

        springs = [
            (bodies[edge.source_id], bodies[edge.target_id])
            for edge in graph.edges
            if edge.source_id in bodies and edge.target_id in bodies
        ]
        ordered = list(bodies.values())

        for iteration in range(iterations):
            if budget is not None:
                budget.check("layout", completed_steps=iteration)

            # Repulsion
            for j, a in enumerate(ordered):
                for b in ordered[j + 1:]:
                    dx = b.x - a.x
                    dy = b.y - a.y
                    distance = max(math.hypot(dx, dy), s.min_distance)
                    force = s.repulsion / (distance * distance)
                    fx = dx / distance * force
                    fy = dy / distance * force
                    a.vx -= fx
                    a.vy -= fy
                    b.vx += fx
                    b.vy += fy

            # Attraction
            for source, target in springs:
                dx = target.x - source.x
                dy = target.y - source.y
                distance = max(math.hypot(dx, dy), s.min_distance)
                force = distance * s.attraction
                fx = dx / distance * force
                fy = dy / distance * force
                source.vx += fx
                source.vy += fy
                target.vx -= fx
                target.vy -= fy

            # Integrate
            for body in ordered:
                speed = math.hypot(body.vx, body.vy)
                if speed > s.max_velocity:
                    body.vx = body.vx / speed * s.max_velocity
                    body.vy = body.vy / speed * s.max_velocity

                body.x = _clamp(body.x + body.vx, width)
                body.y = _clamp(body.y + body.vy, height)

                body.vx *= s.damping
                body.vy *= s.damping

        logger.debug(
            f"Laid out {len(bodies)} nodes and {len(springs)} edges "
            f"in {iterations} iterations"
        )
        return {node_id: Position(x=body.x, y=body.y) for node_id, body in bodies.items()}


def _clamp(value: float, upper: float) -> float:
    return max(0.0, min(upper, value))
