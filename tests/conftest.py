import pytest

from config import SimulationConfig


@pytest.fixture
def config():
    """Config with damping, anchoring and spring defaults neutralized."""
    return SimulationConfig(
        repulsion_strength=10.0,
        repulsion_range=5.0,
        spring_stiffness=0.5,
        spring_rest_length=4.0,
        anchor_strength=0.5,
        layer_spacing=100.0,
        damping_factor=1.0,
        time_step=1.0,
        max_iterations=1000,
        convergence_threshold=0.0,
        initial_spread=50.0,
        seed=7,
    )


@pytest.fixture
def graph_dict():
    """Three layers (declared out of order), five nodes, four edges."""
    return {
        "metadata": {"title": "test graph"},
        "layers": [
            {"id": "L2", "index": 2, "label": "third"},
            {"id": "L0", "index": 0, "label": "first"},
            {"id": "L1", "index": 1, "label": "second"},
        ],
        "nodes": [
            {"id": "a", "label": "A", "layerIndex": 0, "weight": 2},
            {"id": "b", "label": "B", "layerIndex": 0},
            {"id": "c", "label": "C", "layerIndex": 1, "position": {"x": 1, "y": 2, "z": 3}},
            {"id": "d", "label": "D", "layerIndex": 2, "position": [4, 5, 6]},
            {"id": "e", "label": "E", "layerIndex": 2},
        ],
        "edges": [
            {"id": "ac", "sourceId": "a", "targetId": "c", "metadata": {"strength": 2.0}},
            {"id": "bc", "sourceId": "b", "targetId": "c"},
            {"id": "cd", "sourceId": "c", "targetId": "d", "metadata": {"weight": 0.5}},
            {"id": "ce", "sourceId": "c", "targetId": "e"},
        ],
    }
