"""Layout constants for the infinite board canvas."""

# Offset from a board's top-left position to the point connectors attach to.
# Half the nominal board width and an approximate vertical center.
BOARD_CENTER_OFFSET_X = 160.0
BOARD_CENTER_OFFSET_Y = 200.0

BOARD_WIDTH = 320.0
BOARD_HEIGHT = 400.0

# Vertical lift of a bead-less connector, as a fraction of its horizontal span.
CONNECTOR_ARC_FACTOR = 0.2

# Horizontal spacing used when distributing boards (board width + margin).
DISTRIBUTE_SPACING = 420.0

DEFAULT_GRID_SIZE = 12

# New boards are laid out left-to-right in rows.
NEW_BOARD_ORIGIN_X = 100.0
NEW_BOARD_ORIGIN_Y = 100.0
NEW_BOARD_SPACING_X = 420.0
NEW_BOARD_SPACING_Y = 450.0
NEW_BOARDS_PER_ROW = 3

DEFAULT_CONNECTOR_COLOR = "#3b82f6"
DEFAULT_CONNECTOR_STROKE_WIDTH = 2.0

NEAR_PATH_THRESHOLD = 10.0
CURVE_FLATTEN_STEPS = 16

TEMP_BEAD_PREFIX = "temp-"

STORE_FORMAT_VERSION = "1.0"
