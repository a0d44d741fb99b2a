# config.py — slope map pipeline configuration
# Edit this file to change the viewport, filters, rendering scale, etc.

# ── Viewport ─────────────────────────────────────────────────────────
# Durham, NC / Duke Forest area
# Format: (lng, lat)
DEFAULT_CENTER = (-78.91926884651184, 35.98589793405729)
DEFAULT_ZOOM = 14.898411449605867

# Viewport size in CSS pixels used to derive the visible bbox
VIEWPORT_SIZE = (1280, 800)

# ── Segment filters ──────────────────────────────────────────────────
# Coalesced trail segments shorter than this (meters) are dropped
MIN_SEGMENT_LENGTH_M = 10

# Segments at or above this slope (percent) are treated as bad data
# (bridges over ravines, stairs, elevation tile seams)
MAX_SLOPE_PCT = 100

# ── Geometry scaling ─────────────────────────────────────────────────
# Both are multiplied by 2^-zoom and applied in coordinate units, so the
# on-screen gap at junctions and the arrowhead size stay constant.
TRIM_FACTOR = 20
ARROW_FACTOR = 10

# ── Opacity ──────────────────────────────────────────────────────────
# Each factor saturates at 1.0 when its value reaches the scale below
OPACITY_SLOPE_SCALE = 10       # percent
OPACITY_DELTA_SCALE = 10       # meters of climb
OPACITY_LENGTH_SCALE = 100     # meters of trail

# ── Overpass ─────────────────────────────────────────────────────────
OVERPASS_TIMEOUT = 180

# Mirrors tried in order; each retry moves on to the next one.
OVERPASS_MIRRORS = [
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://maps.mail.ru/osm/tools/overpass/api/interpreter",
]

# highway=* values that count as paths or roads on the basemap
PATH_HIGHWAY_TYPES = [
    "path", "footway", "track", "cycleway", "bridleway", "steps",
    "pedestrian", "residential", "service", "unclassified", "tertiary",
    "secondary", "primary", "living_street",
]

# ── Terrain ──────────────────────────────────────────────────────────
TERRARIUM_URL = "https://elevation-tiles-prod.s3.amazonaws.com/terrarium/{z}/{x}/{y}.png"
TERRAIN_TILE_ZOOM = 15         # highest zoom the terrarium tiles are served at
TERRAIN_TILE_SIZE = 256
TERRAIN_EXAGGERATION = 5
TERRAIN_TIMEOUT = 30

# ── Render loop ──────────────────────────────────────────────────────
DEBOUNCE_SECONDS = 0.1

# ── Cache / output files ─────────────────────────────────────────────
CACHE_FILE = "paths.json"
LINES_FILE = "hill_lines.geojson"
LABELS_FILE = "hill_labels.geojson"
STYLE_FILE = "hill_layers.json"
LOG_FILE = "slope_map.log"
