# forces.py
"""
The forces that shape the layered layout.

A force is a unit of per-step physics logic. The engine calls `reset()` on
every registered force, then `apply(particles)`, which adds to each
particle's force accumulator (or, for a positional constraint, writes the
particle state directly). Four variants exist:

- WithinLayerRepulsion: inverse-square repulsion between particles sharing
  a layer.
- LayerAnchor: holds particles on their layer plane, either as a hard
  positional constraint or as a soft spring.
- EdgeSpring: Hooke's-law spring along every edge.
- Damping: scales velocities during integration.

All forces hold a reference to the shared SimulationConfig and read their
parameters on every apply, so tuning takes effect on the next step.
"""
import logging
import numpy as np
from abc import ABC, abstractmethod
from typing import List, Optional

import vector3d
from config import AnchorMode, SimulationConfig
from constants import MIN_REPULSION_DISTANCE
from graph import GraphStore
from particle import ParticleSystem, layer_plane
from numba import jit

# --- Data Contracts ---
#
# class Force:
#   - apply(self, particles: ParticleSystem) -> None:
#     - Side Effects: Adds to particles.forces. Constraint forces may also
#       overwrite particles.positions / particles.velocities.
#   - reset(self) -> None:
#     - Side Effects: Clears per-step internal state. Most forces have none.
#   - is_constraint: bool
#     - True for forces that must run after every additive force.
#   - velocity_scale(self) -> float:
#     - Multiplier applied to velocities during integration (1.0 = none).


@jit(nopython=True)
def _within_layer_repulsion_numba(positions, forces, order, starts, strength, range_sq, min_distance_sq):
    """
    Numba-jitted pairwise repulsion restricted to same-layer pairs.

    `order` lists particle indices grouped by layer and `starts` marks where
    each group begins, so cross-layer pairs are never visited. Each pair is
    visited once and receives equal and opposite forces.
    """
    group_count = starts.shape[0] - 1
    for g in range(group_count):
        begin = starts[g]
        end = starts[g + 1]
        for a in range(begin, end):
            i = order[a]
            for b in range(a + 1, end):
                j = order[b]
                dx = positions[i, 0] - positions[j, 0]
                dy = positions[i, 1] - positions[j, 1]
                dz = positions[i, 2] - positions[j, 2]
                distance_sq = dx * dx + dy * dy + dz * dz

                if distance_sq > range_sq or distance_sq < min_distance_sq:
                    continue

                distance = np.sqrt(distance_sq)
                # Direction is FROM j TO i; magnitude = strength / d^2
                magnitude = strength / distance_sq
                fx = dx / distance * magnitude
                fy = dy / distance * magnitude
                fz = dz / distance * magnitude

                forces[i, 0] += fx
                forces[i, 1] += fy
                forces[i, 2] += fz
                forces[j, 0] -= fx
                forces[j, 1] -= fy
                forces[j, 2] -= fz


class Force(ABC):
    """Base class of every force the simulation engine can drive."""

    is_constraint = False

    @abstractmethod
    def apply(self, particles: ParticleSystem) -> None:
        """Accumulates this force's contribution into `particles.forces`."""

    def reset(self) -> None:
        """Clears per-step state. Stateless forces keep this no-op."""

    def velocity_scale(self) -> float:
        return 1.0


class WithinLayerRepulsion(Force):
    """
    Inverse-square repulsion between every pair of particles in the same
    layer. Pairs farther apart than `repulsion_range`, or closer than
    MIN_REPULSION_DISTANCE, are skipped. Cost is quadratic in the size of
    each layer.
    """

    def __init__(self, config: SimulationConfig):
        self.config = config

    def apply(self, particles: ParticleSystem) -> None:
        if particles.particle_count < 2:
            return
        order, starts = particles.layer_groups()
        # Squared bounds keep the square root out of the rejection test.
        range_ = self.config.repulsion_range
        _within_layer_repulsion_numba(
            particles.positions, particles.forces, order, starts,
            self.config.repulsion_strength,
            range_ * range_,
            MIN_REPULSION_DISTANCE * MIN_REPULSION_DISTANCE,
        )


class LayerAnchor(Force):
    """
    Pulls each particle toward the plane of its layer on the anchored axis.

    The target coordinate is the layer's explicit z_position, if set, or
    `layer_index * layer_spacing`. The behaviour depends on the configured
    anchor mode:

    - HARD_LOCK: the anchored axis of the position is overwritten with the
      target, and the same axis of velocity and accumulated force is zeroed.
      This is a constraint, so the engine applies it after all additive
      forces.
    - SPRING: adds `anchor_strength * (target - current)` on the anchored
      axis and lets integration and damping settle the particle.

    Fixed particles are never moved by the hard lock.
    """

    def __init__(self, config: SimulationConfig, store: Optional[GraphStore] = None):
        self.config = config
        self.store = store

    @property
    def is_constraint(self) -> bool:
        return self.config.anchor_mode is AnchorMode.HARD_LOCK

    def targets(self, particles: ParticleSystem) -> np.ndarray:
        """Plane coordinate of every particle's layer, shape (N,)."""
        layer_indices = particles.layer_indices
        targets = layer_indices.astype(np.float64) * self.config.layer_spacing
        if self.store is not None:
            for index in np.unique(layer_indices):
                layer = self.store.get_layer(int(index))
                if layer is not None and layer.z_position is not None:
                    targets[layer_indices == index] = layer_plane(layer, int(index), self.config)
        return targets

    def apply(self, particles: ParticleSystem) -> None:
        if particles.particle_count == 0:
            return
        axis = self.config.anchor_axis
        targets = self.targets(particles)

        if self.config.anchor_mode is AnchorMode.HARD_LOCK:
            free = ~particles.fixed
            particles.positions[free, axis] = targets[free]
            particles.velocities[free, axis] = 0.0
            particles.forces[free, axis] = 0.0
        else:
            displacement = targets - particles.positions[:, axis]
            particles.forces[:, axis] += self.config.anchor_strength * displacement


class EdgeSpring(Force):
    """
    Hooke's-law spring along every edge of the graph.

    The force on the endpoints is `spring_stiffness * edge.strength *
    (distance - spring_rest_length)` along their separation: stretched
    springs pull the endpoints together, compressed ones push them apart.
    """

    def __init__(self, config: SimulationConfig, store: GraphStore):
        self.config = config
        self.store = store
        self._bound_particles: Optional[ParticleSystem] = None
        self._bound_version = -1
        self._sources = np.zeros(0, dtype=np.int64)
        self._targets = np.zeros(0, dtype=np.int64)
        self._strengths = np.zeros(0, dtype=np.float64)

    def _bind(self, particles: ParticleSystem) -> None:
        """Resolves edge endpoints to particle indices."""
        sources, targets, strengths = [], [], []
        skipped = 0
        for edge in self.store.list_edges():
            s = particles.index_of(edge.source_id)
            t = particles.index_of(edge.target_id)
            if s is None or t is None:
                skipped += 1
                continue
            sources.append(s)
            targets.append(t)
            strengths.append(edge.strength)

        self._sources = np.array(sources, dtype=np.int64)
        self._targets = np.array(targets, dtype=np.int64)
        self._strengths = np.array(strengths, dtype=np.float64)
        self._bound_particles = particles
        self._bound_version = self.store.version

        logging.debug(f"EdgeSpring bound {len(sources)} edges to particles.")
        if skipped:
            logging.warning(f"EdgeSpring skipped {skipped} edges whose endpoints have no particle.")

    def apply(self, particles: ParticleSystem) -> None:
        if self._bound_particles is not particles or self._bound_version != self.store.version:
            self._bind(particles)
        if len(self._sources) == 0:
            return

        positions = particles.positions
        separation = vector3d.subtract(positions[self._targets], positions[self._sources])
        distance = vector3d.magnitude(separation)
        direction = vector3d.normalize(separation)

        stretch = distance - self.config.spring_rest_length
        magnitude = self.config.spring_stiffness * self._strengths * stretch
        force = vector3d.scale(direction, magnitude)

        # np.add.at accumulates correctly when a particle appears in several edges.
        np.add.at(particles.forces, self._sources, force)
        np.add.at(particles.forces, self._targets, -force)


class Damping(Force):
    """
    Velocity attenuation. Contributes no force; the engine multiplies every
    free particle's velocity by `damping_factor` during integration.
    """

    def __init__(self, config: SimulationConfig):
        self.config = config

    def apply(self, particles: ParticleSystem) -> None:
        pass

    def velocity_scale(self) -> float:
        return self.config.damping_factor


def build_default_forces(config: SimulationConfig, store: GraphStore) -> List[Force]:
    """The canonical force set: repulsion, springs, damping and layer anchoring."""
    return [
        WithinLayerRepulsion(config),
        EdgeSpring(config, store),
        Damping(config),
        LayerAnchor(config, store),
    ]
