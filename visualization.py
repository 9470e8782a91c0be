# visualization.py
"""
Handles the visualization of the layered layout using Pygame.

The 3D positions are drawn with an orthographic projection: the anchored
axis (the axis the layers are stacked along) points up on screen, and the
camera can be rotated around it (yaw) and tilted (pitch). Nodes can be
dragged within their layer plane; a dragged node is pinned for the
duration of the drag.
"""
import logging
import math
import pygame
import numpy as np
from constants import (
    BACKGROUND_COLOR, CAMERA_ROTATION_STEP, EDGE_COLOR, FPS, FULLSCREEN,
    LABEL_COLOR, LAYER_COLORS, MAX_NODE_RADIUS, MIN_NODE_RADIUS, PICK_RADIUS,
    PINNED_OUTLINE_COLOR, SELECTED_OUTLINE_COLOR, UI_BACKGROUND_ALPHA, UI_PANEL_WIDTH,
    WINDOW_HEIGHT, WINDOW_WIDTH
)
from typing import List, Optional, Tuple

# Forward reference for type hinting to avoid circular import
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from simulation import Simulation
    from graph import GraphStore


# --- Data Contracts ---
#
# class Visualizer:
#   - __init__(self, colors: Optional[list] = None, node_scale: float = 1.0):
#     - Inputs:
#       - colors: Optional list of RGB color lists for the layers, from the
#         configuration. If None, the default layer palette is used.
#       - node_scale: Multiplier applied to node radii.
#     - Outputs: None
#     - Side Effects: Initializes Pygame and creates a display surface.
#
#   - draw(self, simulation: "Simulation") -> bool:
#     - Inputs:
#       - simulation: The engine whose particles and graph are drawn.
#     - Outputs:
#       - bool: False if the user has quit, True otherwise.
#     - Side Effects: Renders nodes, edges and the status panel, handles
#       Pygame events. Dragging pins/unpins particles and writes their
#       positions between steps.
#       Clicking a node selects it for the info box; L toggles node labels.
#
# node_info_lines(store: GraphStore, node_id: str) -> List[str]:
#   - Outputs: Panel lines describing one node (label, layer, weight, trend
#     and any other metadata). Empty if the node is unknown.


def _format_value(value) -> str:
    return f"{value:.2f}" if isinstance(value, float) else str(value)


def node_info_lines(store: "GraphStore", node_id: str) -> List[str]:
    node = store.get_node(node_id)
    if node is None:
        return []
    layer = store.get_layer(node.layer_index)
    layer_name = (layer.label or layer.id) if layer is not None else "?"
    lines = [
        f"Node: {node.label}",
        f"Layer: {layer_name} (#{node.layer_index})",
    ]
    if node.weight is not None:
        lines.append(f"Weight: {_format_value(node.weight)}")
    trend = node.metadata.get("trend")
    if isinstance(trend, (int, float)) and not isinstance(trend, bool):
        arrow = "+" if trend > 0 else ""
        lines.append(f"Trend: {arrow}{_format_value(trend)}")
    for key, value in node.metadata.items():
        if key != "trend":
            lines.append(f"{key}: {_format_value(value)}")
    return lines


class Visualizer:
    """
    Renders the layout state and lets the user drag nodes.
    """
    def __init__(self, colors: Optional[list] = None, node_scale: float = 1.0):
        """
        Initializes Pygame and the display window.
        """
        pygame.init()
        pygame.font.init()

        if FULLSCREEN:
            display_info = pygame.display.Info()
            width, height = display_info.current_w, display_info.current_h
            self.screen = pygame.display.set_mode((width, height), pygame.FULLSCREEN)
        else:
            width, height = WINDOW_WIDTH, WINDOW_HEIGHT
            self.screen = pygame.display.set_mode((width, height))

        # The drawing area is the total width minus the UI panel
        self.view_width = width - UI_PANEL_WIDTH
        self.view_height = height
        self.ui_panel_surface = pygame.Surface((UI_PANEL_WIDTH, height), pygame.SRCALPHA)
        self.ui_panel_surface.fill((40, 40, 40, UI_BACKGROUND_ALPHA))

        pygame.display.set_caption("Layered DAG Layout")
        self.clock = pygame.time.Clock()
        self.font_main = pygame.font.SysFont(None, 20)
        self.font_title = pygame.font.SysFont(None, 24, bold=True)
        self.font_label = pygame.font.SysFont(None, 16)

        self.colors = self._initialize_colors(colors)
        self.node_scale = node_scale

        # Camera
        self.yaw = 0.6
        self.pitch = 0.35
        self.zoom = 1.0
        self.paused = False
        self.show_labels = True
        self._center: Optional[np.ndarray] = None
        self._scale = 1.0

        # Drag state
        self.dragged_id: Optional[str] = None
        # Last clicked node, shown in the info panel until another click.
        self.selected_id: Optional[str] = None
        self._last_mouse: Tuple[int, int] = (0, 0)

        logging.info(f"Visualizer initialized with Pygame display ({width}x{height}).")

    def _initialize_colors(self, config_colors: Optional[list]) -> List[pygame.Color]:
        """Initializes layer colors from config, falling back to the default palette."""
        if not config_colors:
            logging.info("No layer colors found in config. Using default palette.")
            return [pygame.Color(c) for c in LAYER_COLORS]
        try:
            return [pygame.Color(rgb) for rgb in config_colors]
        except (ValueError, TypeError) as e:
            logging.error(f"Could not parse layer colors from config: {e}. Falling back to default palette.")
            return [pygame.Color(c) for c in LAYER_COLORS]

    def _axes(self, simulation: "Simulation") -> Tuple[int, int, int]:
        """(first free axis, second free axis, anchored axis)."""
        up = simulation.config.anchor_axis
        free = [a for a in range(3) if a != up]
        return free[0], free[1], up

    def _project(self, positions: np.ndarray, simulation: "Simulation") -> Tuple[np.ndarray, np.ndarray]:
        """
        Orthographic projection of (N, 3) world positions.

        Returns:
            (screen, depth): (N, 2) screen coordinates and (N,) depth values
            used to draw far nodes first.
        """
        a, b, up = self._axes(simulation)
        centered = positions - self._center
        x, y, z = centered[:, a], centered[:, b], centered[:, up]

        cy, sy = math.cos(self.yaw), math.sin(self.yaw)
        x1 = x * cy - y * sy
        y1 = x * sy + y * cy
        cp, sp = math.cos(self.pitch), math.sin(self.pitch)
        depth = y1 * cp - z * sp
        height = y1 * sp + z * cp

        scale = self._scale * self.zoom
        screen = np.empty((len(positions), 2))
        screen[:, 0] = self.view_width / 2 + x1 * scale
        screen[:, 1] = self.view_height / 2 - height * scale
        return screen, depth

    def _fit(self, positions: np.ndarray) -> None:
        """Centers the camera on the layout and fits it into the view."""
        if len(positions) == 0:
            self._center = np.zeros(3)
            self._scale = 1.0
            return
        lo, hi = positions.min(axis=0), positions.max(axis=0)
        self._center = (lo + hi) / 2
        extent = float(np.max(hi - lo)) or 1.0
        self._scale = 0.8 * min(self.view_width, self.view_height) / extent

    def _node_radii(self, simulation: "Simulation") -> np.ndarray:
        ids = simulation.particles.ids
        weights = np.array([
            (node.weight if node is not None and node.weight else 1.0)
            for node in (simulation.store.get_node(pid) for pid in ids)
        ], dtype=np.float64)
        if len(weights) == 0:
            return weights
        # Radius grows with the cube root of weight^2, clamped to a sane range.
        radii = np.cbrt(weights ** 2) * self.node_scale
        return np.clip(radii, MIN_NODE_RADIUS, MAX_NODE_RADIUS)

    def _pick(self, mouse_pos: Tuple[int, int], screen: np.ndarray, simulation: "Simulation") -> Optional[str]:
        if len(screen) == 0:
            return None
        delta = screen - np.asarray(mouse_pos, dtype=np.float64)
        dist_sq = np.sum(delta * delta, axis=1)
        nearest = int(np.argmin(dist_sq))
        if dist_sq[nearest] > PICK_RADIUS ** 2:
            return None
        return simulation.particles.ids[nearest]

    def _drag(self, simulation: "Simulation", mouse_pos: Tuple[int, int]) -> None:
        """Moves the dragged node within its layer plane by the mouse delta."""
        dx = mouse_pos[0] - self._last_mouse[0]
        dy = mouse_pos[1] - self._last_mouse[1]
        self._last_mouse = mouse_pos
        scale = self._scale * self.zoom

        # Invert the projection for a displacement that keeps the anchored axis.
        dx1 = dx / scale
        sp = math.sin(self.pitch)
        dy1 = -dy / (scale * sp) if abs(sp) > 1e-3 else 0.0
        cy, sy = math.cos(self.yaw), math.sin(self.yaw)
        a, b, _ = self._axes(simulation)

        particle = simulation.particles[self.dragged_id]
        position = particle.position
        position[a] += dx1 * cy + dy1 * sy
        position[b] += -dx1 * sy + dy1 * cy
        simulation.pin(self.dragged_id, position)

    def _handle_events(self, simulation: "Simulation", screen: np.ndarray) -> bool:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                logging.info("Quit event received. Shutting down visualizer.")
                return False

            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    logging.info("ESC key pressed. Shutting down visualizer.")
                    return False
                elif event.key == pygame.K_SPACE:
                    self.paused = not self.paused
                    logging.info(f"Simulation {'paused' if self.paused else 'resumed'} by user.")
                elif event.key == pygame.K_r:
                    simulation.reheat()
                    logging.info("Simulation reheated by user.")
                elif event.key == pygame.K_f:
                    self._fit(simulation.particles.positions)
                elif event.key == pygame.K_l:
                    self.show_labels = not self.show_labels
                elif event.key == pygame.K_LEFT:
                    self.yaw -= CAMERA_ROTATION_STEP
                elif event.key == pygame.K_RIGHT:
                    self.yaw += CAMERA_ROTATION_STEP
                elif event.key == pygame.K_UP:
                    self.pitch = min(self.pitch + CAMERA_ROTATION_STEP, math.pi / 2)
                elif event.key == pygame.K_DOWN:
                    self.pitch = max(self.pitch - CAMERA_ROTATION_STEP, -math.pi / 2)

            if event.type == pygame.MOUSEWHEEL:
                self.zoom = float(np.clip(self.zoom * (1.1 ** event.y), 0.1, 10.0))

            if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                self.dragged_id = self._pick(event.pos, screen, simulation)
                self.selected_id = self.dragged_id
                if self.dragged_id is not None:
                    self._last_mouse = event.pos
                    simulation.pin(self.dragged_id)
                    logging.info(f"Node '{self.dragged_id}' pinned for dragging.")

            if event.type == pygame.MOUSEMOTION and self.dragged_id is not None:
                self._drag(simulation, event.pos)

            if event.type == pygame.MOUSEBUTTONUP and event.button == 1 and self.dragged_id is not None:
                simulation.unpin(self.dragged_id)
                simulation.reheat()
                logging.info(f"Node '{self.dragged_id}' released.")
                self.dragged_id = None
        return True

    def _draw_panel(self, simulation: "Simulation") -> None:
        self.screen.blit(self.ui_panel_surface, (self.view_width, 0))
        x = self.view_width + 16
        y = 16
        title = simulation.store.metadata.get("title", "Layered graph")
        self.screen.blit(self.font_title.render(str(title), True, (255, 255, 255)), (x, y))
        y += 34

        snapshot = simulation.snapshot()
        lines = [
            f"State: {snapshot.state.value}{' (paused)' if self.paused else ''}",
            f"Iteration: {snapshot.iteration} / {simulation.config.max_iterations}",
            f"Kinetic energy: {snapshot.kinetic_energy:.3f}",
            f"Layers: {simulation.store.layer_count}",
            f"Nodes: {simulation.store.node_count}",
            f"Edges: {simulation.store.edge_count}",
            "",
        ]
        for key, value in simulation.config.to_dict().items():
            display_value = f"{value:.2f}" if isinstance(value, float) else str(value)
            lines.append(f"{key.replace('_', ' ').title()}: {display_value}")
        lines += ["", "Drag: move node", "Space: pause", "R: reheat", "F: fit view", "L: labels", "Arrows: rotate", "Esc: quit"]

        for line in lines:
            if line:
                self.screen.blit(self.font_main.render(line, True, (210, 210, 210)), (x, y))
            y += 20

        # Layer legend
        y += 10
        for layer in simulation.store.list_layers():
            color = self.colors[layer.index % len(self.colors)]
            pygame.draw.circle(self.screen, color, (x + 6, y + 7), 6)
            label = layer.label or layer.id
            self.screen.blit(self.font_main.render(str(label), True, (210, 210, 210)), (x + 18, y))
            y += 20

    def _draw_node_info(self, simulation: "Simulation") -> None:
        """Info box for the selected node, in the top-left corner of the view."""
        if self.selected_id is None:
            return
        lines = node_info_lines(simulation.store, self.selected_id)
        if not lines:
            self.selected_id = None
            return
        box = pygame.Surface((240, 16 + 20 * len(lines)), pygame.SRCALPHA)
        box.fill((40, 40, 40, UI_BACKGROUND_ALPHA))
        self.screen.blit(box, (12, 12))
        for i, line in enumerate(lines):
            font = self.font_title if i == 0 else self.font_main
            self.screen.blit(font.render(line, True, (230, 230, 230)), (20, 20 + 20 * i))

    def draw(self, simulation: "Simulation") -> bool:
        """
        Draws all nodes, edges and the UI panel, and handles events.

        Returns:
            bool: False if the application should exit, True otherwise.
        """
        particles = simulation.particles
        if self._center is None:
            self._fit(particles.positions)

        screen, depth = self._project(particles.positions, simulation)
        if not self._handle_events(simulation, screen):
            return False
        # Dragging may have moved a node; reproject before drawing.
        screen, depth = self._project(particles.positions, simulation)

        self.screen.fill(BACKGROUND_COLOR)

        # 1. Edges
        for edge in simulation.store.list_edges():
            s = particles.index_of(edge.source_id)
            t = particles.index_of(edge.target_id)
            if s is None or t is None:
                continue
            pygame.draw.aaline(self.screen, EDGE_COLOR, tuple(screen[s]), tuple(screen[t]))

        # 2. Nodes, far to near
        radii = self._node_radii(simulation)
        for i in np.argsort(-depth, kind="stable"):
            layer_index = int(particles.layer_indices[i])
            color = self.colors[layer_index % len(self.colors)]
            center = (int(screen[i, 0]), int(screen[i, 1]))
            pygame.draw.circle(self.screen, color, center, int(radii[i]))
            if particles.fixed[i]:
                pygame.draw.circle(self.screen, PINNED_OUTLINE_COLOR, center, int(radii[i]) + 2, 1)
            if particles.ids[i] == self.selected_id:
                pygame.draw.circle(self.screen, SELECTED_OUTLINE_COLOR, center, int(radii[i]) + 4, 2)
            if self.show_labels:
                node = simulation.store.get_node(particles.ids[i])
                label = node.label if node is not None else particles.ids[i]
                text = self.font_label.render(label, True, LABEL_COLOR)
                self.screen.blit(text, (center[0] + int(radii[i]) + 3, center[1] - text.get_height() // 2))

        # 3. UI panel on top
        self._draw_panel(simulation)
        self._draw_node_info(simulation)

        pygame.display.flip()
        self.clock.tick(FPS)
        return True

    def close(self):
        """Shuts down Pygame."""
        pygame.font.quit()
        pygame.quit()
