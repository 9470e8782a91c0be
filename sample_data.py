# sample_data.py
"""
Built-in sample dataset: time-sliced word frequencies.

Each month is a layer; each word present in a month is a node weighted by
its frequency; edges link the same word across adjacent months, with a
spring strength derived from the average frequency of the two endpoints.
"""
import logging
from typing import Any, Dict, List

from graph import GraphData, parse_graph_data

TIME_SLICES = ["Jan 2025", "Feb 2025", "Mar 2025", "Apr 2025", "May 2025"]

# Frequency of each word per time slice (0 = absent in that slice).
WORD_FREQUENCIES = {
    "AI":          [80, 90, 95, 92, 100],
    "machine":     [60, 65, 62, 58, 55],
    "learning":    [70, 72, 68, 75, 78],
    "neural":      [40, 45, 50, 55, 60],
    "network":     [50, 48, 52, 50, 53],
    "transformer": [30, 45, 60, 70, 85],
    "attention":   [25, 35, 50, 55, 65],
    "data":        [90, 88, 85, 82, 80],
    "model":       [75, 78, 82, 85, 88],
    "training":    [55, 58, 60, 62, 65],
    "inference":   [20, 30, 40, 50, 60],
    "GPU":         [35, 40, 45, 50, 55],
    "cloud":       [60, 58, 55, 52, 50],
    "edge":        [10, 15, 25, 35, 45],
    "deployment":  [30, 35, 38, 42, 48],
    "safety":      [15, 25, 40, 55, 70],
    "alignment":   [10, 20, 35, 50, 65],
    "agent":       [5, 15, 30, 55, 80],
    "reasoning":   [20, 25, 35, 50, 70],
    "multimodal":  [10, 20, 35, 50, 60],
}

# Frequencies are on a 0-100 scale; springs use them as a 0-1 strength.
FREQUENCY_SCALE = 100.0


def sample_graph_dict() -> Dict[str, Any]:
    """The sample dataset in the external JSON structure."""
    layers = [
        {"id": f"t{t}", "index": t, "label": label}
        for t, label in enumerate(TIME_SLICES)
    ]

    nodes: List[Dict[str, Any]] = []
    edges: List[Dict[str, Any]] = []
    for word, frequencies in WORD_FREQUENCIES.items():
        for t, freq in enumerate(frequencies):
            if freq <= 0:
                continue
            nodes.append({
                "id": f"{word}_{t}",
                "label": word,
                "layerIndex": t,
                "weight": freq,
                "metadata": {
                    "word": word,
                    "timeSlice": TIME_SLICES[t],
                    "frequency": freq,
                    "trend": freq - frequencies[t - 1] if t > 0 else 0,
                },
            })
        for t in range(len(frequencies) - 1):
            current, following = frequencies[t], frequencies[t + 1]
            if current > 0 and following > 0:
                edges.append({
                    "id": f"{word}_{t}->{t + 1}",
                    "sourceId": f"{word}_{t}",
                    "targetId": f"{word}_{t + 1}",
                    "metadata": {
                        "type": "continuation",
                        "strength": (current + following) / 2 / FREQUENCY_SCALE,
                    },
                })

    return {
        "metadata": {
            "title": "Word frequencies over time",
            "timeUnit": "month",
            "dataSource": "built-in sample",
        },
        "layers": layers,
        "nodes": nodes,
        "edges": edges,
    }


def generate_sample_graph() -> GraphData:
    data = sample_graph_dict()
    logging.info(
        f"Generated sample graph: {len(data['layers'])} layers, "
        f"{len(data['nodes'])} nodes, {len(data['edges'])} edges."
    )
    return parse_graph_data(data)
