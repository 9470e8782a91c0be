# simulation.py
"""
Handles the core simulation logic and numerical integration.

This module defines the Simulation class, which owns the particle set and an
ordered list of forces, and advances the layout by one time step per call to
`step()`. Integration is semi-implicit (symplectic) Euler: velocities are
updated from the current forces first, positions from the new velocities
second, which keeps spring-like systems stable.
"""
import enum
import logging
import numpy as np
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import vector3d
from config import SimulationConfig
from forces import Force
from graph import GraphStore
from particle import Particle, ParticleSystem

# --- Data Contracts ---
#
# class Simulation:
#   - __init__(self, config: SimulationConfig = None, store: GraphStore = None):
#     - Side Effects: Stores references to the config and graph store. The
#       engine starts IDLE with no particles and no forces.
#
#   - load(self, graph, strict=None) -> List[str]:
#     - Side Effects: Replaces the store's graph, derives a new particle set
#       and re-arms the engine (see set_particles).
#
#   - set_particles(self, particles: ParticleSystem) -> None:
#     - Side Effects: Replaces the particle set, resets the iteration counter
#       to 0 and enters RUNNING (CONVERGED straight away if max_iterations
#       is 0).
#
#   - step(self) -> None:
#     - Side Effects: No-op unless RUNNING. Otherwise resets every force,
#       applies additive forces then constraint forces (each group in
#       registration order), integrates free particles, clears every force
#       accumulator and increments the iteration counter.
#     - Invariants: Fixed particles never move. Particle count and layer
#       indices never change.
#
#   Callers must serialize access: no step() concurrently with another
#   step() or with external writes to particle state.


class SimulationState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    CONVERGED = "converged"


@dataclass(frozen=True)
class SimulationSnapshot:
    """Introspection record of the engine, for status displays and logs."""
    state: SimulationState
    iteration: int
    particle_count: int
    kinetic_energy: float
    max_displacement: float

    @property
    def converged(self) -> bool:
        return self.state is SimulationState.CONVERGED


class Simulation:
    """
    Drives the step/integrate/converge cycle of the layered layout.
    """

    def __init__(self, config: Optional[SimulationConfig] = None, store: Optional[GraphStore] = None):
        """
        Initializes the simulation engine.

        Args:
            config (SimulationConfig): Shared tunables, read on every step.
            store (GraphStore): Graph store used by load(). A new empty store
                is created when omitted.
        """
        self.config = config if config is not None else SimulationConfig()
        self.store = store if store is not None else GraphStore()
        self.particles: Optional[ParticleSystem] = None
        self._forces: List[Force] = []
        self.iteration = 0
        self.state = SimulationState.IDLE
        # Largest distance any free particle moved during the last step.
        self.last_displacement = 0.0

        logging.info("Simulation engine initialized.")

    # --- Loading ---

    def load(self, graph, strict: Optional[bool] = None) -> List[str]:
        """
        Loads a graph into the store and derives a fresh particle set from it.

        Returns:
            List[str]: Entities dropped by a lenient load (empty when strict).
        """
        dropped = self.store.load(graph, strict=strict)
        self.set_particles(ParticleSystem.from_graph(self.store, self.config))
        return dropped

    def set_particles(self, particles: ParticleSystem) -> None:
        self.particles = particles
        self.iteration = 0
        self.last_displacement = 0.0
        if self.config.max_iterations == 0:
            self.state = SimulationState.CONVERGED
        else:
            self.state = SimulationState.RUNNING
        logging.info(
            f"Particle set replaced ({particles.particle_count} particles). "
            f"Simulation state: {self.state.value}."
        )

    # --- Forces ---

    def add_force(self, force: Force) -> None:
        if not isinstance(force, Force):
            raise TypeError(f"Expected a Force, got {type(force).__name__}.")
        self._forces.append(force)
        logging.debug(f"Force registered: {type(force).__name__} (#{len(self._forces)}).")

    def clear_forces(self) -> None:
        self._forces.clear()

    @property
    def forces(self) -> Tuple[Force, ...]:
        return tuple(self._forces)

    # --- Stepping ---

    def step(self) -> None:
        """
        Executes one time step of the simulation.
        """
        if self.state is not SimulationState.RUNNING:
            return
        particles = self.particles

        # 1. Clear per-step state of every force
        for force in self._forces:
            force.reset()

        # 2. Additive forces first, then positional constraints, so that a
        #    constraint is never overwritten by a later force in the same step
        additive = [f for f in self._forces if not f.is_constraint]
        constraints = [f for f in self._forces if f.is_constraint]
        for force in additive + constraints:
            force.apply(particles)

        # 3. Integrate and clear the force accumulators
        self.last_displacement = self._integrate(particles)

        self.iteration += 1

        # 4. Check convergence
        if self.iteration >= self.config.max_iterations:
            self.state = SimulationState.CONVERGED
            logging.info(f"Simulation converged: reached max_iterations ({self.config.max_iterations}).")
        elif 0.0 < self.config.convergence_threshold and self.last_displacement < self.config.convergence_threshold:
            self.state = SimulationState.CONVERGED
            logging.info(
                f"Simulation converged at iteration {self.iteration}: max displacement "
                f"{self.last_displacement:.6f} below threshold {self.config.convergence_threshold}."
            )

    def _integrate(self, particles: ParticleSystem) -> float:
        """
        Semi-implicit Euler update of every free particle.

        Returns:
            float: The largest per-particle displacement of this step.
        """
        dt = self.config.time_step
        velocity_scale = 1.0
        for force in self._forces:
            velocity_scale *= force.velocity_scale()

        max_displacement = 0.0
        free = ~particles.fixed
        if np.any(free):
            # v = v + (F / m) * dt, then damping
            acceleration = particles.forces[free] / particles.masses[free, np.newaxis]
            velocities = (particles.velocities[free] + acceleration * dt) * velocity_scale
            particles.velocities[free] = velocities

            # x = x + v * dt, using the new velocity
            displacement = velocities * dt
            particles.positions[free] += displacement
            max_displacement = float(np.max(vector3d.magnitude(displacement)))

        # Fixed particles skip the update but still have their forces cleared.
        particles.clear_forces()
        return max_displacement

    def run(self, max_steps: Optional[int] = None, log_throttle: int = 100) -> int:
        """
        Steps until the engine converges or `max_steps` steps have been taken.

        Returns:
            int: The number of steps executed.
        """
        steps = 0
        while self.state is SimulationState.RUNNING:
            if max_steps is not None and steps >= max_steps:
                logging.info(f"Stopped after max_steps ({max_steps}) without convergence.")
                break
            self.step()
            steps += 1

            # Hot loops must throttle logs
            if log_throttle and steps % log_throttle == 0:
                logging.info(f"Simulation step {self.iteration}/{self.config.max_iterations}")
                logging.debug(
                    f"Step {self.iteration} | Kinetic energy: {self.kinetic_energy():.4f} | "
                    f"Max displacement: {self.last_displacement:.4f}"
                )
        return steps

    # --- Interaction between steps ---

    def _particle(self, particle_id: str) -> Particle:
        if self.particles is None:
            raise RuntimeError("No particles loaded.")
        return self.particles[particle_id]

    def pin(self, particle_id: str, position=None) -> None:
        """
        Marks a particle fixed and optionally moves it. Its velocity is
        zeroed so that it does not jump when unpinned.
        """
        particle = self._particle(particle_id)
        particle.fixed = True
        particle.velocity = vector3d.create()
        if position is not None:
            particle.position = position

    def unpin(self, particle_id: str) -> None:
        self._particle(particle_id).fixed = False

    def reheat(self) -> None:
        """
        Re-arms a converged engine without replacing its particles, e.g.
        after the user dragged a node.
        """
        if self.particles is None:
            return
        self.iteration = 0
        if self.config.max_iterations > 0:
            self.state = SimulationState.RUNNING
        logging.debug("Simulation reheated.")

    # --- Introspection ---

    def is_converged(self) -> bool:
        return self.state is SimulationState.CONVERGED

    def get_iteration(self) -> int:
        return self.iteration

    def kinetic_energy(self) -> float:
        """Total kinetic energy 0.5 * m * |v|^2 of the free particles."""
        if self.particles is None or self.particles.particle_count == 0:
            return 0.0
        free = ~self.particles.fixed
        speed_sq = vector3d.dot(self.particles.velocities[free], self.particles.velocities[free])
        return float(0.5 * np.sum(self.particles.masses[free] * speed_sq))

    def positions(self) -> Dict[str, List[float]]:
        if self.particles is None:
            return {}
        return self.particles.positions_by_id()

    def snapshot(self) -> SimulationSnapshot:
        return SimulationSnapshot(
            state=self.state,
            iteration=self.iteration,
            particle_count=0 if self.particles is None else self.particles.particle_count,
            kinetic_energy=self.kinetic_energy(),
            max_displacement=self.last_displacement,
        )
