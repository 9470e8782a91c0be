# graph.py
"""
The layered graph model and its store.

A layered graph is a set of layers (ordered by integer index), nodes that
each belong to one layer, and directed edges between nodes. The GraphStore
holds one immutable snapshot of such a graph. Loading builds a brand new
snapshot and swaps it in with a single assignment, so a reader never sees a
half-loaded graph: either the previous graph or the new one.
"""
import logging
import math
import numbers
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from constants import AXIS_NAMES, DEFAULT_EDGE_STRENGTH
from errors import MalformedGraphError

Vector = Tuple[float, float, float]

# --- Data Contracts ---
#
# class GraphStore:
#   - load(self, graph: GraphData | Mapping, strict: Optional[bool] = None) -> List[str]:
#     - Inputs:
#       - graph: A GraphData bundle, or a JSON-shaped mapping with "layers",
#         "nodes" and "edges" lists (see parse_graph_data).
#       - strict: Overrides the store's default policy for this call.
#     - Outputs: Descriptions of the entities dropped (lenient mode only).
#     - Side Effects: Replaces the current snapshot. On error the previous
#       snapshot is left untouched.
#     - Invariants (of every snapshot):
#       - Layer indices, node ids and edge ids are unique.
#       - Every node's layer_index is a key of the layer table.
#       - Every edge's source_id and target_id are keys of the node table.
#       - Every edge's strength is a finite number >= 0.


@dataclass(frozen=True)
class Layer:
    id: str
    index: int
    label: Optional[str] = None
    timestamp: Optional[str] = None
    # Explicit plane coordinate; overrides index * layer_spacing when anchoring.
    z_position: Optional[float] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Node:
    id: str
    label: str
    layer_index: int
    weight: Optional[float] = None
    position: Optional[Vector] = None
    velocity: Optional[Vector] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Edge:
    id: str
    source_id: str
    target_id: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def strength_source(self) -> Optional[str]:
        """The metadata key the spring strength is read from, if any."""
        for key in ("strength", "weight"):
            if self.metadata.get(key) is not None:
                return key
        return None

    @property
    def strength(self) -> float:
        """Spring strength multiplier: metadata "strength", then "weight", else 1."""
        key = self.strength_source
        if key is None:
            return DEFAULT_EDGE_STRENGTH
        return float(self.metadata[key])


@dataclass(frozen=True)
class GraphData:
    """An unvalidated graph bundle, as handed to GraphStore.load()."""
    layers: Tuple[Layer, ...] = ()
    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)


# --- Parsing of the external JSON structure ---

def _require(entry: Mapping[str, Any], key: str, kind: str, position: int) -> Any:
    if not isinstance(entry, Mapping):
        raise MalformedGraphError(
            f"{kind} #{position} must be an object, got {type(entry).__name__}.",
            entity_kind=kind,
        )
    if key not in entry:
        ident = entry.get("id", f"#{position}")
        raise MalformedGraphError(
            f"{kind} {ident} is missing required field '{key}'.",
            entity_kind=kind, entity_id=entry.get("id"),
        )
    return entry[key]


def _parse_vector(raw: Any, kind: str, entity_id: Any, name: str) -> Optional[Vector]:
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        values = [raw.get(axis, 0.0) for axis in AXIS_NAMES]
    elif isinstance(raw, (list, tuple)) and len(raw) == len(AXIS_NAMES):
        values = list(raw)
    else:
        raise MalformedGraphError(
            f"{kind} {entity_id}: '{name}' must be an {{x, y, z}} object or a 3-element list.",
            entity_kind=kind, entity_id=entity_id,
        )
    for v in values:
        if isinstance(v, bool) or not isinstance(v, numbers.Real) or not math.isfinite(v):
            raise MalformedGraphError(
                f"{kind} {entity_id}: '{name}' has a non-finite component {v!r}.",
                entity_kind=kind, entity_id=entity_id,
            )
    return (float(values[0]), float(values[1]), float(values[2]))


def _parse_coordinate(raw: Any, kind: str, entity_id: Any, name: str) -> Optional[float]:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, numbers.Real) or not math.isfinite(raw):
        raise MalformedGraphError(
            f"{kind} {entity_id}: '{name}' must be a finite number, got {raw!r}.",
            entity_kind=kind, entity_id=entity_id,
        )
    return float(raw)


def _parse_index(raw: Any, kind: str, entity_id: Any, name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, numbers.Integral):
        raise MalformedGraphError(
            f"{kind} {entity_id}: '{name}' must be an integer, got {raw!r}.",
            entity_kind=kind, entity_id=entity_id,
        )
    return int(raw)


def parse_graph_data(data: Mapping[str, Any]) -> GraphData:
    """
    Converts the external JSON structure into a GraphData bundle.

    Expected format:
        {
          "metadata": {...},
          "layers": [{"id": "l0", "index": 0, "label": "...", "zPosition": 0}],
          "nodes": [{"id": "n1", "label": "...", "layerIndex": 0, "weight": 2,
                     "position": {"x": 0, "y": 0, "z": 0}, "metadata": {...}}],
          "edges": [{"id": "e1", "sourceId": "n1", "targetId": "n2",
                     "metadata": {"strength": 0.5}}]
        }

    Only the shape of each entry is checked here. Cross-references are
    validated by GraphStore.load().
    """
    if not isinstance(data, Mapping):
        raise MalformedGraphError(f"Graph must be an object, got {type(data).__name__}.")

    layers = []
    for i, raw in enumerate(data.get("layers") or []):
        layer_id = str(_require(raw, "id", "layer", i))
        layers.append(Layer(
            id=layer_id,
            index=_parse_index(_require(raw, "index", "layer", i), "layer", layer_id, "index"),
            label=raw.get("label"),
            timestamp=raw.get("timestamp"),
            z_position=_parse_coordinate(raw.get("zPosition"), "layer", layer_id, "zPosition"),
            metadata=dict(raw.get("metadata") or {}),
        ))

    nodes = []
    for i, raw in enumerate(data.get("nodes") or []):
        node_id = str(_require(raw, "id", "node", i))
        weight = raw.get("weight")
        if weight is not None and (isinstance(weight, bool) or not isinstance(weight, numbers.Real)):
            raise MalformedGraphError(
                f"node {node_id}: 'weight' must be a number, got {weight!r}.",
                entity_kind="node", entity_id=node_id,
            )
        nodes.append(Node(
            id=node_id,
            label=str(raw.get("label", node_id)),
            layer_index=_parse_index(_require(raw, "layerIndex", "node", i), "node", node_id, "layerIndex"),
            weight=None if weight is None else float(weight),
            position=_parse_vector(raw.get("position"), "node", node_id, "position"),
            velocity=_parse_vector(raw.get("velocity"), "node", node_id, "velocity"),
            metadata=dict(raw.get("metadata") or {}),
        ))

    edges = []
    for i, raw in enumerate(data.get("edges") or []):
        edge_id = str(_require(raw, "id", "edge", i))
        edges.append(Edge(
            id=edge_id,
            source_id=str(_require(raw, "sourceId", "edge", i)),
            target_id=str(_require(raw, "targetId", "edge", i)),
            metadata=dict(raw.get("metadata") or {}),
        ))

    return GraphData(
        layers=tuple(layers),
        nodes=tuple(nodes),
        edges=tuple(edges),
        metadata=dict(data.get("metadata") or {}),
    )


# --- Snapshot construction ---

class _GraphSnapshot:
    """Read-only tables of one validated graph."""

    def __init__(
        self,
        layers: Dict[int, Layer],
        nodes: Dict[str, Node],
        edges: Dict[str, Edge],
        metadata: Mapping[str, Any],
    ):
        self.layers = MappingProxyType(layers)
        self.nodes = MappingProxyType(nodes)
        self.edges = MappingProxyType(edges)
        self.metadata = MappingProxyType(dict(metadata))
        self.sorted_layers = tuple(layers[i] for i in sorted(layers))

        by_layer: Dict[int, List[Node]] = {index: [] for index in layers}
        for node in nodes.values():
            by_layer[node.layer_index].append(node)
        self.by_layer = MappingProxyType({k: tuple(v) for k, v in by_layer.items()})

        adjacency: Dict[str, List[str]] = {node_id: [] for node_id in nodes}
        for edge in edges.values():
            adjacency[edge.source_id].append(edge.target_id)
            adjacency[edge.target_id].append(edge.source_id)
        self.adjacency = MappingProxyType({k: tuple(v) for k, v in adjacency.items()})


_EMPTY_SNAPSHOT = _GraphSnapshot({}, {}, {}, {})


class _Validator:
    """Applies the strict or lenient policy while a snapshot is built."""

    def __init__(self, strict: bool):
        self.strict = strict
        self.dropped: List[str] = []

    def reject(self, message: str, kind: str, entity_id: Any) -> None:
        if self.strict:
            logging.error(f"Graph rejected: {message}")
            raise MalformedGraphError(message, entity_kind=kind, entity_id=entity_id)
        logging.warning(f"Dropping {kind} {entity_id!r}: {message}")
        self.dropped.append(f"{kind} {entity_id}: {message}")

    def duplicate(self, message: str, kind: str, entity_id: Any) -> None:
        if self.strict:
            logging.error(f"Graph rejected: {message}")
            raise MalformedGraphError(message, entity_kind=kind, entity_id=entity_id)
        logging.warning(f"{message} Keeping the last definition.")
        self.dropped.append(f"{kind} {entity_id}: {message}")


def _build_snapshot(data: GraphData, strict: bool) -> Tuple[_GraphSnapshot, List[str]]:
    check = _Validator(strict)

    layers: Dict[int, Layer] = {}
    for layer in data.layers:
        if layer.index in layers:
            check.duplicate(f"Duplicate layer index {layer.index}.", "layer", layer.index)
        layers[layer.index] = layer

    nodes: Dict[str, Node] = {}
    for node in data.nodes:
        if node.layer_index not in layers:
            check.reject(
                f"Node '{node.id}' references unknown layer index {node.layer_index}.",
                "node", node.id,
            )
            continue
        if node.weight is not None and not (math.isfinite(node.weight) and node.weight > 0):
            check.reject(f"Node '{node.id}' has non-positive weight {node.weight}.", "node", node.id)
            continue
        if node.id in nodes:
            check.duplicate(f"Duplicate node id '{node.id}'.", "node", node.id)
            # Re-insert so that insertion order follows the winning definition.
            del nodes[node.id]
        nodes[node.id] = node

    edges: Dict[str, Edge] = {}
    for edge in data.edges:
        missing = [end for end in (edge.source_id, edge.target_id) if end not in nodes]
        if missing:
            check.reject(
                f"Edge '{edge.id}' references unknown node(s): {', '.join(missing)}.",
                "edge", edge.id,
            )
            continue
        key = edge.strength_source
        if key is not None:
            value = edge.metadata[key]
            if isinstance(value, bool) or not isinstance(value, numbers.Real) \
                    or not math.isfinite(value) or value < 0:
                check.reject(
                    f"Edge '{edge.id}' has invalid {key} {value!r}; expected a finite number >= 0.",
                    "edge", edge.id,
                )
                continue
        if edge.id in edges:
            check.duplicate(f"Duplicate edge id '{edge.id}'.", "edge", edge.id)
            del edges[edge.id]
        edges[edge.id] = edge

    return _GraphSnapshot(layers, nodes, edges, data.metadata), check.dropped


class GraphStore:
    """
    Holds one layered graph, replaced wholesale on every load.
    """

    def __init__(self, graph=None, strict: bool = True):
        """
        Args:
            graph: Optional GraphData or JSON-shaped mapping to load right away.
            strict (bool): Default validation policy. Strict loads raise
                MalformedGraphError on the first offending entity; lenient
                loads drop offenders, log a warning for each and report them.
        """
        self.strict = strict
        self._snapshot = _EMPTY_SNAPSHOT
        # Incremented on every successful load; lets consumers detect a swap.
        self.version = 0
        if graph is not None:
            self.load(graph)

    def load(self, graph, strict: Optional[bool] = None) -> List[str]:
        if not isinstance(graph, GraphData):
            graph = parse_graph_data(graph)
        snapshot, dropped = _build_snapshot(graph, self.strict if strict is None else strict)
        # Single reference swap: readers see either the old or the new graph.
        self._snapshot = snapshot
        self.version += 1
        logging.info(
            f"Graph loaded: {len(snapshot.layers)} layers, {len(snapshot.nodes)} nodes, "
            f"{len(snapshot.edges)} edges ({len(dropped)} entities dropped)."
        )
        return dropped

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._snapshot.nodes.get(node_id)

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        return self._snapshot.edges.get(edge_id)

    def get_layer(self, index: int) -> Optional[Layer]:
        return self._snapshot.layers.get(index)

    def list_nodes(self) -> List[Node]:
        return list(self._snapshot.nodes.values())

    def list_edges(self) -> List[Edge]:
        return list(self._snapshot.edges.values())

    def list_layers(self) -> List[Layer]:
        """Layers sorted by index, ascending."""
        return list(self._snapshot.sorted_layers)

    def nodes_in_layer(self, index: int) -> List[Node]:
        return list(self._snapshot.by_layer.get(index, ()))

    def neighbors(self, node_id: str) -> List[str]:
        """Ids of the nodes sharing an edge with `node_id`, in either direction."""
        return list(self._snapshot.adjacency.get(node_id, ()))

    @property
    def metadata(self) -> Mapping[str, Any]:
        return self._snapshot.metadata

    @property
    def node_count(self) -> int:
        return len(self._snapshot.nodes)

    @property
    def edge_count(self) -> int:
        return len(self._snapshot.edges)

    @property
    def layer_count(self) -> int:
        return len(self._snapshot.layers)

    @property
    def is_empty(self) -> bool:
        return not self._snapshot.nodes
