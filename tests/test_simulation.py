import numpy as np
import pytest

from config import AnchorMode
from forces import Damping, EdgeSpring, LayerAnchor, WithinLayerRepulsion, build_default_forces
from particle import ParticleSystem
from simulation import Simulation, SimulationState


def _default_simulation(config, graph_dict):
    sim = Simulation(config)
    sim.load(graph_dict)
    for force in build_default_forces(config, sim.store):
        sim.add_force(force)
    return sim


def test_new_engine_is_idle_and_step_is_noop(config):
    sim = Simulation(config)
    assert sim.state is SimulationState.IDLE
    sim.step()
    assert sim.get_iteration() == 0
    assert not sim.is_converged()


def test_repulsion_pushes_pair_apart_symmetrically(config):
    """Two same-layer particles one unit apart move apart by equal amounts."""
    sim = Simulation(config)
    sim.add_force(WithinLayerRepulsion(config))
    sim.add_force(Damping(config))
    sim.set_particles(ParticleSystem(["a", "b"], [[0, 0, 0], [1, 0, 0]], layer_indices=[0, 0]))

    sim.step()

    a, b = sim.particles["a"].position, sim.particles["b"].position
    # F = 10 / 1^2, v = F * dt, x = v * dt
    assert a.tolist() == [-10.0, 0.0, 0.0]
    assert b.tolist() == [11.0, 0.0, 0.0]
    np.testing.assert_array_equal(a - [0, 0, 0], -(b - [1, 0, 0]))
    assert sim.get_iteration() == 1


def test_zero_max_iterations_converges_immediately(config):
    config.max_iterations = 0
    sim = Simulation(config)
    sim.add_force(WithinLayerRepulsion(config))
    sim.set_particles(ParticleSystem(["a", "b"], [[0, 0, 0], [1, 0, 0]]))
    assert sim.is_converged()

    sim.step()

    assert sim.get_iteration() == 0
    assert sim.particles.positions.tolist() == [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]]


def test_hard_lock_holds_anchored_axis_exactly(config, graph_dict):
    """With HARD_LOCK, the anchored axis equals layer_index * spacing after every step."""
    sim = Simulation(config)
    sim.load(graph_dict)
    # Registered first on purpose: constraints still run after additive forces.
    sim.add_force(LayerAnchor(config, sim.store))
    sim.add_force(WithinLayerRepulsion(config))
    sim.add_force(EdgeSpring(config, sim.store))
    sim.add_force(Damping(config))
    config.damping_factor = 0.9

    for _ in range(5):
        sim.step()
        assert sim.particles["d"].position[2] == 200.0
        assert sim.particles["e"].position[2] == 200.0
        assert sim.particles["c"].position[2] == 100.0
        assert sim.particles["a"].position[2] == 0.0
    # The other axes are still free to move
    assert sim.particles["d"].position[:2].tolist() != [4.0, 5.0]


def test_converged_engine_does_not_move(config, graph_dict):
    config.max_iterations = 3
    sim = _default_simulation(config, graph_dict)
    assert sim.run() == 3
    assert sim.is_converged()
    positions = sim.particles.positions.copy()
    velocities = sim.particles.velocities.copy()

    for _ in range(5):
        sim.step()

    assert np.array_equal(sim.particles.positions, positions)
    assert np.array_equal(sim.particles.velocities, velocities)
    assert sim.get_iteration() == 3


def test_set_particles_rearms_converged_engine(config, graph_dict):
    config.max_iterations = 2
    sim = _default_simulation(config, graph_dict)
    sim.run()
    assert sim.state is SimulationState.CONVERGED

    sim.set_particles(ParticleSystem(["z"], [[0, 0, 0]]))

    assert sim.get_iteration() == 0
    assert sim.state is SimulationState.RUNNING


def test_load_resets_iteration(config, graph_dict):
    sim = _default_simulation(config, graph_dict)
    sim.run(max_steps=4)
    assert sim.get_iteration() == 4
    sim.load(graph_dict)
    assert sim.get_iteration() == 0
    assert sim.state is SimulationState.RUNNING


def test_load_rearms_converged_engine(config, graph_dict):
    """Loading a graph clears the converged flag and the iteration count."""
    config.max_iterations = 2
    sim = _default_simulation(config, graph_dict)
    sim.run()
    assert sim.is_converged()
    assert sim.get_iteration() == 2

    sim.load(graph_dict)
    assert not sim.is_converged()
    assert sim.state is SimulationState.RUNNING
    assert sim.get_iteration() == 0
    sim.step()
    assert sim.get_iteration() == 1


def test_fixed_particle_never_moves(config, graph_dict):
    config.damping_factor = 0.8
    sim = _default_simulation(config, graph_dict)
    sim.pin("c", [10.0, -10.0, 55.0])
    sim.run(max_steps=25)
    assert sim.particles["c"].position.tolist() == [10.0, -10.0, 55.0]
    assert np.all(sim.particles.forces == 0.0)


def test_unpin_and_reheat(config, graph_dict):
    config.max_iterations = 2
    sim = _default_simulation(config, graph_dict)
    sim.pin("a")
    assert sim.particles["a"].fixed
    sim.run()
    assert sim.is_converged()

    sim.unpin("a")
    sim.reheat()

    assert not sim.particles["a"].fixed
    assert sim.state is SimulationState.RUNNING
    assert sim.get_iteration() == 0


def test_pin_unknown_particle(config, graph_dict):
    sim = _default_simulation(config, graph_dict)
    with pytest.raises(KeyError):
        sim.pin("nope")
    with pytest.raises(RuntimeError):
        Simulation(config).pin("a")


def test_spring_anchor_settles_on_plane(config):
    config.update(anchor_mode=AnchorMode.SPRING, anchor_strength=0.5, layer_spacing=10.0,
                  damping_factor=0.6, time_step=0.5)
    sim = Simulation(config)
    sim.add_force(LayerAnchor(config))
    sim.add_force(Damping(config))
    sim.set_particles(ParticleSystem(["a"], [[0, 0, 0]], layer_indices=[1]))
    sim.run(max_steps=300)
    assert sim.particles["a"].position[2] == pytest.approx(10.0, abs=1e-6)


def test_displacement_threshold_converges_early(config):
    config.convergence_threshold = 1e-3
    sim = Simulation(config)
    sim.add_force(Damping(config))
    sim.set_particles(ParticleSystem(["still"], [[0, 0, 0]]))
    sim.step()
    assert sim.is_converged()
    assert sim.get_iteration() == 1


def test_config_changes_apply_on_next_step(config):
    sim = Simulation(config)
    sim.add_force(WithinLayerRepulsion(config))
    sim.set_particles(ParticleSystem(["a", "b"], [[0, 0, 0], [1, 0, 0]]))
    config.repulsion_strength = 0.0
    sim.step()
    assert sim.particles.positions.tolist() == [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]]


def test_runs_are_deterministic(config, graph_dict):
    first = _default_simulation(config, graph_dict)
    second = _default_simulation(config, graph_dict)
    first.run(max_steps=50)
    second.run(max_steps=50)
    assert np.array_equal(first.particles.positions, second.particles.positions)


def test_default_forces_damp_the_system(config, graph_dict):
    config.update(damping_factor=0.6, time_step=0.5)
    sim = _default_simulation(config, graph_dict)
    sim.run(max_steps=400)
    assert sim.kinetic_energy() < 1e-6
    assert np.all(np.isfinite(sim.particles.positions))


def test_snapshot_and_positions(config, graph_dict):
    sim = _default_simulation(config, graph_dict)
    sim.step()
    snapshot = sim.snapshot()
    assert snapshot.iteration == 1
    assert snapshot.particle_count == 5
    assert not snapshot.converged
    assert set(sim.positions()) == {"a", "b", "c", "d", "e"}


def test_add_force_rejects_non_forces(config):
    with pytest.raises(TypeError):
        Simulation(config).add_force(object())
