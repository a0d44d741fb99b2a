"""
terrain.py — Elevation lookups backed by Terrarium DEM tiles.

Terrarium PNG tiles pack elevation into RGB:
    elevation_m = R * 256 + G + B / 256 - 32768
"""

import io
import logging
import math
import time

import requests
from PIL import Image

from config import (
    TERRARIUM_URL, TERRAIN_TILE_ZOOM, TERRAIN_TILE_SIZE, TERRAIN_TIMEOUT,
)
from trail_graph import Coord, ElevationLookup, TrailNetworkError

logger = logging.getLogger(__name__)

# Vector map widgets lay the world out on 512 px tiles
WORLD_TILE_SIZE = 512


class ElevationError(TrailNetworkError):
    """Terrain data for a coordinate could not be loaded."""


# ── Web Mercator ──────────────────────────────────────────────────────

def lnglat_to_world(lng: float, lat: float, zoom: float) -> tuple[float, float]:
    """Project to fractional tile coordinates at ``zoom``."""
    n = 2 ** zoom
    lat_rad = math.radians(lat)
    x = (lng + 180.0) / 360.0 * n
    y = (1.0 - math.log(math.tan(lat_rad) + 1 / math.cos(lat_rad)) / math.pi) / 2.0 * n
    return x, y


def world_to_lnglat(x: float, y: float, zoom: float) -> Coord:
    n = 2 ** zoom
    lng = x / n * 360.0 - 180.0
    lat = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * y / n))))
    return lng, lat


def viewport_bbox(center: Coord, zoom: float, width: int, height: int) -> tuple[float, float, float, float]:
    """Visible (south, west, north, east) for a ``width`` x ``height`` px view."""
    cx, cy = lnglat_to_world(center[0], center[1], zoom)
    half_w = width / 2 / WORLD_TILE_SIZE
    half_h = height / 2 / WORLD_TILE_SIZE
    west, north = world_to_lnglat(cx - half_w, cy - half_h, zoom)
    east, south = world_to_lnglat(cx + half_w, cy + half_h, zoom)
    return (south, west, north, east)


# ── Lookups ───────────────────────────────────────────────────────────

def exaggeration_corrected(lookup: ElevationLookup, exaggeration: float | None) -> ElevationLookup:
    """Wrap a lookup that reports exaggerated heights so it returns meters."""
    factor = exaggeration or 1

    def corrected(coord: Coord) -> float:
        return lookup(coord) / factor

    return corrected


def decode_terrarium(rgb: tuple[int, int, int]) -> float:
    r, g, b = rgb[:3]
    return r * 256 + g + b / 256 - 32768


class TerrariumElevation:
    """Callable elevation lookup; tiles are fetched once and kept for reuse."""

    def __init__(self, url=TERRARIUM_URL, zoom=TERRAIN_TILE_ZOOM, tile_size=TERRAIN_TILE_SIZE):
        self.url = url
        self.zoom = zoom
        self.tile_size = tile_size
        self.tiles: dict[tuple[int, int, int], Image.Image] = {}
        self.max_retries = 3
        self.retry_delay = 2

    def _download_tile(self, x: int, y: int) -> Image.Image:
        url = self.url.format(z=self.zoom, x=x, y=y)
        for attempt in range(self.max_retries):
            try:
                response = requests.get(url, timeout=TERRAIN_TIMEOUT)
                if response.status_code == 200:
                    return Image.open(io.BytesIO(response.content)).convert("RGB")
                if response.status_code == 429:
                    logger.warning(f"Rate limited fetching {url}, retrying...")
                    time.sleep(self.retry_delay * (attempt + 1))
                else:
                    logger.error(f"Error fetching terrain tile {url}: {response.status_code}")
                    break
            except requests.exceptions.RequestException as e:
                logger.warning(f"Network error fetching {url} on attempt {attempt + 1}: {e}")
                time.sleep(self.retry_delay)
        raise ElevationError(f"Could not load terrain tile {self.zoom}/{x}/{y}")

    def tile(self, x: int, y: int) -> Image.Image:
        key = (self.zoom, x, y)
        if key not in self.tiles:
            self.tiles[key] = self._download_tile(x, y)
            logger.debug(f"Loaded terrain tile {key} ({len(self.tiles)} cached)")
        return self.tiles[key]

    def __call__(self, coord: Coord) -> float:
        wx, wy = lnglat_to_world(coord[0], coord[1], self.zoom)
        tx, ty = int(wx), int(wy)
        px = min(int((wx - tx) * self.tile_size), self.tile_size - 1)
        py = min(int((wy - ty) * self.tile_size), self.tile_size - 1)
        return decode_terrarium(self.tile(tx, ty).getpixel((px, py)))
