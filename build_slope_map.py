#!/usr/bin/env python3
"""
build_slope_map.py — Slope-colored trail map pipeline.

Stages:
  1. Fetch    — query Overpass for path/road ways in the viewport (or load cache)
  2. Terrain  — look up node elevations from Terrarium DEM tiles
  3. Analyze  — coalesce the network, measure slope, drop short/steep segments
  4. Write    — hill line + label GeoJSON, plus a map style to draw them

Usage:
    python3 build_slope_map.py                          # default viewport
    python3 build_slope_map.py --center -78.92 35.99 --zoom 15
    python3 build_slope_map.py --bbox "35.97,-78.94,36.00,-78.90"
    python3 build_slope_map.py --offline                # reuse cached paths.json
    python3 build_slope_map.py --input paths.geojson    # any line GeoJSON
    python3 build_slope_map.py --out DIR                # write outputs to DIR
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from config import (
    DEFAULT_CENTER, DEFAULT_ZOOM, VIEWPORT_SIZE, CACHE_FILE,
    LINES_FILE, LABELS_FILE, STYLE_FILE, LOG_FILE,
    TERRARIUM_URL, TERRAIN_TILE_ZOOM, TERRAIN_TILE_SIZE, TERRAIN_EXAGGERATION,
)
from osm_paths import OSMPathDownloader, load_features
from slope_analysis import compute_hill_lines, hill_layers
from terrain import TerrariumElevation, viewport_bbox
from trail_graph import TrailNetworkError

logger = logging.getLogger(__name__)


def setup_logging(log_file: str = LOG_FILE) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


# ── Stage 1: Fetch ────────────────────────────────────────────────────

def fetch_paths(bbox: tuple, offline: bool, input_file: str | None = None) -> list | None:
    if input_file:
        return load_features(input_file)

    cache = Path(CACHE_FILE)
    if offline:
        if cache.exists():
            logger.info(f"[fetch] Offline mode — loading {CACHE_FILE}")
            return load_features(cache)
        logger.error(f"[fetch] --offline requested but {CACHE_FILE} not found")
        return None

    downloader = OSMPathDownloader()
    if not downloader.download_osm_data(bbox):
        return None
    if not downloader.parse_osm_xml():
        return None
    downloader.save_features()
    return downloader.to_features()


# ── Stage 4: Write ────────────────────────────────────────────────────

def hill_style() -> dict:
    """Terrain source + hill layers, ready to merge into a basemap style."""
    return {
        "sources": {
            "terrain": {
                "type": "raster-dem",
                "encoding": "terrarium",
                "tiles": [TERRARIUM_URL],
                "tileSize": TERRAIN_TILE_SIZE,
                "maxzoom": TERRAIN_TILE_ZOOM,
            },
            "hill-line-source": {"type": "geojson", "data": LINES_FILE},
            "hill-label-source": {"type": "geojson", "data": LABELS_FILE},
        },
        "terrain": {"source": "terrain", "exaggeration": TERRAIN_EXAGGERATION},
        "layers": hill_layers(),
    }


def write_outputs(lines: dict, labels: dict, out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    (out_dir / LINES_FILE).write_text(json.dumps(lines))
    (out_dir / LABELS_FILE).write_text(json.dumps(labels))
    (out_dir / STYLE_FILE).write_text(json.dumps(hill_style(), indent=2))
    logger.info(f"[write] {len(lines['features'])} hill lines → {out_dir / LINES_FILE}")
    logger.info(f"[write] {len(labels['features'])} labels → {out_dir / LABELS_FILE}")


# ── Main ─────────────────────────────────────────────────────────────

def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Slope-colored trail map builder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    p.add_argument("--center", nargs=2, type=float, metavar=("LNG", "LAT"),
                   default=list(DEFAULT_CENTER), help="Viewport center")
    p.add_argument("--zoom", type=float, default=DEFAULT_ZOOM,
                   help="Map zoom; scales junction gaps and arrowheads")
    p.add_argument("--bbox", type=str,
                   help="min_lat,min_lon,max_lat,max_lon (overrides --center)")
    p.add_argument("--offline", action="store_true",
                   help=f"Skip Overpass fetch, use cached {CACHE_FILE}")
    p.add_argument("--input", metavar="FILE",
                   help="Read path features from a GeoJSON file instead")
    p.add_argument("--out", metavar="DIR", default=".",
                   help="Directory to write the outputs into")
    return p.parse_args(argv)


def main(argv=None) -> bool:
    args = parse_args(argv)
    setup_logging()

    if args.bbox:
        bbox = OSMPathDownloader().parse_bbox(args.bbox)
    else:
        bbox = viewport_bbox(tuple(args.center), args.zoom, *VIEWPORT_SIZE)
    logger.info(f"[viewport] bbox={bbox} zoom={args.zoom:.2f}")

    features = fetch_paths(bbox, offline=args.offline, input_file=args.input)
    if features is None:
        return False

    try:
        lines, labels = compute_hill_lines(features, TerrariumElevation(), args.zoom)
    except TrailNetworkError as e:
        logger.error(f"[analyze] Pass aborted: {e}")
        return False

    write_outputs(lines, labels, Path(args.out))
    logger.info("Pipeline completed successfully")
    return True


if __name__ == "__main__":
    sys.exit(0 if main() else 1)
