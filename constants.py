# constants.py
"""
Application-level constants.

These values are static and do not change between simulation runs.
They are fundamental to the application's framework, such as rendering
properties, default window sizes, or numeric guards of the physics that
are not part of the experimental configuration.
"""

# --- Physics guards ---
# Same-layer pairs closer than this are skipped by the repulsion force.
# Near-coincident positions would otherwise produce unbounded forces.
MIN_REPULSION_DISTANCE = 0.01

# Number of spatial axes. Positions, velocities and forces are (N, 3) arrays.
DIMENSIONS = 3

# Axis names used for logging and for {x, y, z} vector objects in JSON files.
AXIS_NAMES = ("x", "y", "z")

# Default spring strength for edges that carry neither "strength" nor
# "weight" in their metadata.
DEFAULT_EDGE_STRENGTH = 1.0

# Visualization settings
# Set to True to run in borderless fullscreen mode.
# Set to False to run in a fixed-size window (1400x900).
FULLSCREEN = False
WINDOW_WIDTH = 1400
WINDOW_HEIGHT = 900
UI_PANEL_WIDTH = 280
FPS = 60
BACKGROUND_COLOR = (15, 17, 26)
EDGE_COLOR = (90, 96, 120)
PINNED_OUTLINE_COLOR = (255, 255, 255)
LABEL_COLOR = (190, 194, 210)
SELECTED_OUTLINE_COLOR = (255, 220, 90)
MIN_NODE_RADIUS = 3
MAX_NODE_RADIUS = 14
# Radius in screen pixels within which a click grabs a node.
PICK_RADIUS = 16
# Radians of camera rotation per arrow-key press.
CAMERA_ROTATION_STEP = 0.08
# Alpha for the UI panel background
UI_BACKGROUND_ALPHA = 120

# Layer colour palette, cycled by layer index when the config file does not
# provide one.
LAYER_COLORS = [
    (59, 130, 246),   # Blue
    (6, 182, 212),    # Cyan
    (139, 92, 246),   # Violet
    (245, 158, 11),   # Amber
    (16, 185, 129),   # Emerald
    (244, 63, 94),    # Rose
    (99, 102, 241),   # Indigo
    (236, 72, 153),   # Pink
]
