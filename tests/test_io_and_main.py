import json

import numpy as np
import pytest

import main
from errors import MalformedGraphError
from forces import build_default_forces
from graph import GraphStore
from sample_data import TIME_SLICES, WORD_FREQUENCIES, generate_sample_graph, sample_graph_dict
from simulation import Simulation
from utils import load_config, load_graph_file, save_positions


def test_sample_graph_is_well_formed():
    """Every word appears in every slice, linked across adjacent slices."""
    store = GraphStore(generate_sample_graph())
    assert store.layer_count == len(TIME_SLICES)
    assert store.node_count == len(WORD_FREQUENCIES) * len(TIME_SLICES)
    assert store.edge_count == len(WORD_FREQUENCIES) * (len(TIME_SLICES) - 1)
    edge = store.get_edge("AI_0->1")
    assert edge.strength == pytest.approx(0.85)
    assert store.get_node("agent_3").metadata["trend"] == 25


def test_load_graph_file(tmp_path):
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(sample_graph_dict()), encoding="utf-8")
    data = load_graph_file(str(path))
    assert len(data.nodes) == 100


def test_load_graph_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_graph_file(str(tmp_path / "nope.json"))


def test_load_graph_file_malformed(tmp_path):
    path = tmp_path / "graph.json"
    path.write_text(json.dumps({"nodes": [{"id": "n"}]}), encoding="utf-8")
    with pytest.raises(MalformedGraphError):
        load_graph_file(str(path))


def test_non_finite_edge_strength_in_file_rejected(tmp_path, config, graph_dict):
    """JSON NaN literals parse, but the load refuses them before any step."""
    graph_dict["edges"][0]["metadata"] = {"strength": float("nan")}
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(graph_dict), encoding="utf-8")
    assert "NaN" in path.read_text(encoding="utf-8")

    sim = Simulation(config)
    with pytest.raises(MalformedGraphError):
        sim.load(load_graph_file(str(path)))

    dropped = sim.load(load_graph_file(str(path)), strict=False)
    assert len(dropped) == 1
    for force in build_default_forces(config, sim.store):
        sim.add_force(force)
    sim.run(max_steps=3)
    assert np.all(np.isfinite(sim.particles.positions))


def test_save_positions(tmp_path, config, graph_dict):
    sim = Simulation(config)
    sim.load(graph_dict)
    out = tmp_path / "out" / "positions.json"
    save_positions(str(out), sim)
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["iteration"] == 0
    assert payload["converged"] is False
    assert payload["positions"]["c"] == [1.0, 2.0, 3.0]


def _write_config(tmp_path, **simulation_parameters):
    config = {
        "logging": {"level": "WARNING", "log_file": None},
        "simulation_parameters": simulation_parameters,
        "run_control": {"log_throttle_steps": 10},
    }
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config), encoding="utf-8")
    return path


def test_load_config(tmp_path):
    path = _write_config(tmp_path, max_iterations=5)
    assert load_config(str(path))["simulation_parameters"]["max_iterations"] == 5


def test_main_headless_writes_positions(tmp_path):
    config_path = _write_config(tmp_path, max_iterations=30)
    out = tmp_path / "positions.json"
    code = main.main(["--config", str(config_path), "--headless", "--out", str(out)])
    assert code == 0
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["iteration"] == 30
    assert payload["converged"] is True
    assert len(payload["positions"]) == 100


def test_main_rejects_invalid_config(tmp_path):
    config_path = _write_config(tmp_path, time_step=-1)
    assert main.main(["--config", str(config_path), "--headless"]) == 1


def test_main_missing_config(tmp_path):
    assert main.main(["--config", str(tmp_path / "missing.json"), "--headless"]) == 1


class _ScriptedViewer:
    """Stands in for the pygame viewer: records iterations, reheats on cue."""

    def __init__(self, frames, reheat_at):
        self.paused = False
        self.frames = frames
        self.reheat_at = reheat_at
        self.seen = []

    def draw(self, sim):
        self.seen.append(sim.get_iteration())
        if len(self.seen) == self.reheat_at:
            sim.reheat()
        return len(self.seen) < self.frames


def test_interactive_loop_renews_step_budget_after_reheat(config, graph_dict):
    """Once max_steps is spent, a reheat lets the loop step again."""
    sim = Simulation(config)
    sim.load(graph_dict)
    viewer = _ScriptedViewer(frames=10, reheat_at=5)
    main._run_interactive(sim, viewer, max_steps=3, log_throttle=0)
    assert viewer.seen == [1, 2, 3, 3, 3, 1, 2, 3, 3, 3]


def test_interactive_loop_holds_while_paused(config, graph_dict):
    sim = Simulation(config)
    sim.load(graph_dict)
    viewer = _ScriptedViewer(frames=3, reheat_at=0)
    viewer.paused = True
    main._run_interactive(sim, viewer, max_steps=None, log_throttle=0)
    assert viewer.seen == [0, 0, 0]
