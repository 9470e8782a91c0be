# particle.py
"""
Manages the physical state of all particles in the simulation.

This module defines the ParticleSystem class, which stores one particle per
graph node in efficient NumPy arrays, and the Particle class, a live view
onto one row of those arrays for code that works with a single particle
(pinning, dragging, inspection).
"""
import logging
import numpy as np
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import vector3d
from config import SimulationConfig
from constants import DIMENSIONS
from errors import InvalidConfigError

# --- Data Contracts ---
#
# class ParticleSystem:
#   - __init__(self, ids, positions, velocities=None, masses=None,
#              layer_indices=None, fixed=None):
#     - Inputs:
#       - ids: Sequence[str], unique particle identifiers (node ids).
#       - positions: array-like of shape (N, 3).
#       - velocities: array-like of shape (N, 3), defaults to zeros.
#       - masses: array-like of shape (N,), defaults to ones. Must be > 0.
#       - layer_indices: array-like of shape (N,), defaults to zeros.
#       - fixed: array-like of shape (N,), defaults to all False.
#     - Side Effects: Copies the inputs into internal arrays.
#     - Invariants:
#       - self.positions, self.velocities, self.forces are float64 (N, 3).
#       - self.masses is float64 (N,), every entry finite and > 0.
#       - self.layer_indices is int64 (N,) and never changes.
#       - self.fixed is bool (N,).
#     - Raises: InvalidConfigError for bad shapes, duplicate ids or masses <= 0.


class Particle:
    """
    A live view of one particle. Reads and writes go straight to the arrays
    of the owning ParticleSystem. Writes must happen between steps.
    """
    __slots__ = ("_system", "index")

    def __init__(self, system: "ParticleSystem", index: int):
        self._system = system
        self.index = index

    @property
    def id(self) -> str:
        return self._system.ids[self.index]

    @property
    def position(self) -> np.ndarray:
        return self._system.positions[self.index].copy()

    @position.setter
    def position(self, value) -> None:
        self._system.positions[self.index] = vector3d.as_vector(value)

    @property
    def velocity(self) -> np.ndarray:
        return self._system.velocities[self.index].copy()

    @velocity.setter
    def velocity(self, value) -> None:
        self._system.velocities[self.index] = vector3d.as_vector(value)

    @property
    def force(self) -> np.ndarray:
        return self._system.forces[self.index].copy()

    @property
    def mass(self) -> float:
        return float(self._system.masses[self.index])

    @property
    def fixed(self) -> bool:
        return bool(self._system.fixed[self.index])

    @fixed.setter
    def fixed(self, value: bool) -> None:
        self._system.fixed[self.index] = bool(value)

    @property
    def layer_index(self) -> int:
        return int(self._system.layer_indices[self.index])

    def __repr__(self) -> str:
        x, y, z = self._system.positions[self.index]
        return (
            f"Particle(id={self.id!r}, layer={self.layer_index}, "
            f"position=({x:.3f}, {y:.3f}, {z:.3f}), fixed={self.fixed})"
        )


def _as_array(values, shape: Tuple[int, ...], dtype, name: str) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    if arr.size == 0 and 0 in shape:
        arr = arr.reshape(shape)
    if arr.shape != shape:
        raise InvalidConfigError(f"'{name}' must have shape {shape}, got {arr.shape}.", field=name)
    return arr


class ParticleSystem:
    """
    A container for all particles, managing their state via NumPy arrays.
    """

    def __init__(
        self,
        ids: Sequence[str],
        positions,
        velocities=None,
        masses=None,
        layer_indices=None,
        fixed=None,
    ):
        self.ids: Tuple[str, ...] = tuple(ids)
        n = len(self.ids)
        self._index: Dict[str, int] = {pid: i for i, pid in enumerate(self.ids)}
        if len(self._index) != n:
            raise InvalidConfigError("Particle ids must be unique.", field="ids")

        self.positions = _as_array(positions, (n, DIMENSIONS), np.float64, "positions")
        self.velocities = (
            np.zeros((n, DIMENSIONS), dtype=np.float64) if velocities is None
            else _as_array(velocities, (n, DIMENSIONS), np.float64, "velocities")
        )
        self.forces = np.zeros((n, DIMENSIONS), dtype=np.float64)
        self.masses = (
            np.ones(n, dtype=np.float64) if masses is None
            else _as_array(masses, (n,), np.float64, "masses")
        )
        self.layer_indices = (
            np.zeros(n, dtype=np.int64) if layer_indices is None
            else _as_array(layer_indices, (n,), np.int64, "layer_indices")
        )
        self.fixed = (
            np.zeros(n, dtype=np.bool_) if fixed is None
            else _as_array(fixed, (n,), np.bool_, "fixed")
        )

        if not np.all(np.isfinite(self.positions)) or not np.all(np.isfinite(self.velocities)):
            raise InvalidConfigError("Particle positions and velocities must be finite.", field="positions")
        bad_mass = ~(np.isfinite(self.masses) & (self.masses > 0))
        if np.any(bad_mass):
            offender = self.ids[int(np.argmax(bad_mass))]
            raise InvalidConfigError(
                f"Particle '{offender}' has invalid mass {self.masses[bad_mass][0]}; mass must be > 0.",
                field="masses",
            )

        self._layer_groups: Optional[Tuple[np.ndarray, np.ndarray]] = None

        logging.debug(
            f"ParticleSystem created with {n} particles. "
            f"Positions shape: {self.positions.shape}, Masses shape: {self.masses.shape}"
        )

    @classmethod
    def from_graph(cls, store, config: SimulationConfig) -> "ParticleSystem":
        """
        Derives one particle per node of `store`, in node insertion order.

        Nodes without an initial position are placed deterministically: the
        two free axes are drawn uniformly from [-initial_spread, initial_spread]
        with an RNG seeded from `config.seed`, and the anchored axis starts on
        the node's layer plane.
        """
        nodes = store.list_nodes()
        n = len(nodes)
        axis = config.anchor_axis

        # All randomness is controlled by the single configured seed.
        rng = np.random.default_rng(config.seed)
        spread = config.initial_spread
        positions = rng.uniform(low=-spread, high=spread, size=(n, DIMENSIONS))
        velocities = np.zeros((n, DIMENSIONS), dtype=np.float64)
        masses = np.ones(n, dtype=np.float64)
        layer_indices = np.zeros(n, dtype=np.int64)

        for i, node in enumerate(nodes):
            layer_indices[i] = node.layer_index
            if node.position is not None:
                positions[i] = node.position
            else:
                positions[i, axis] = layer_plane(store.get_layer(node.layer_index), node.layer_index, config)
            if node.velocity is not None:
                velocities[i] = node.velocity
            if config.weight_as_mass and node.weight is not None:
                masses[i] = node.weight

        particles = cls(
            ids=[node.id for node in nodes],
            positions=positions,
            velocities=velocities,
            masses=masses,
            layer_indices=layer_indices,
        )
        logging.info(
            f"ParticleSystem derived from graph: {n} particles across "
            f"{len(np.unique(layer_indices))} layers."
        )
        return particles

    @property
    def particle_count(self) -> int:
        return len(self.ids)

    def __len__(self) -> int:
        return len(self.ids)

    def __iter__(self) -> Iterator[Particle]:
        for i in range(len(self.ids)):
            yield Particle(self, i)

    def __getitem__(self, particle_id: str) -> Particle:
        return Particle(self, self._index[particle_id])

    def __contains__(self, particle_id: str) -> bool:
        return particle_id in self._index

    def get(self, particle_id: str) -> Optional[Particle]:
        index = self._index.get(particle_id)
        return None if index is None else Particle(self, index)

    def index_of(self, particle_id: str) -> Optional[int]:
        return self._index.get(particle_id)

    def layer_groups(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Returns (order, starts): particle indices sorted by layer, and the
        offsets where each layer's run begins, with a final sentinel equal
        to N. Layer indices never change, so the result is computed once.
        """
        if self._layer_groups is None:
            order = np.argsort(self.layer_indices, kind="stable").astype(np.int64)
            sorted_layers = self.layer_indices[order]
            boundaries = np.flatnonzero(np.diff(sorted_layers)) + 1
            starts = np.concatenate(([0], boundaries, [len(order)])).astype(np.int64)
            self._layer_groups = (order, starts)
        return self._layer_groups

    def positions_by_id(self) -> Dict[str, List[float]]:
        return {pid: self.positions[i].tolist() for i, pid in enumerate(self.ids)}

    def clear_forces(self) -> None:
        self.forces.fill(0.0)


def layer_plane(layer, layer_index: int, config: SimulationConfig) -> float:
    """
    Coordinate of a layer's plane on the anchored axis: the layer's explicit
    z_position if it has one, otherwise layer_index * layer_spacing.
    """
    if layer is not None and layer.z_position is not None:
        return layer.z_position
    return layer_index * config.layer_spacing
