import json
import logging
import os
import time
from xml.etree import ElementTree as ET

import requests

from config import OVERPASS_MIRRORS, OVERPASS_TIMEOUT, PATH_HIGHWAY_TYPES, CACHE_FILE

logger = logging.getLogger(__name__)


class OSMPathDownloader:
    """Downloads the path and road ways visible in a bounding box."""

    def __init__(self, mirrors=None):
        self.mirrors = list(mirrors or OVERPASS_MIRRORS)
        self.osm_data = None
        self.paths = []
        self.data_file = 'osm_paths.xml'
        self.json_file = CACHE_FILE
        self.max_retries = 3
        self.retry_delay = 5

    def parse_bbox(self, bbox_str):
        """Parse bounding box string to tuple."""
        try:
            parts = bbox_str.split(',')
            if len(parts) != 4:
                raise ValueError("Bbox must have 4 values: min_lat,min_lon,max_lat,max_lon")
            return tuple(float(p) for p in parts)
        except ValueError as e:
            logger.error(f"Invalid bounding box format: {e}")
            raise

    def build_overpass_query(self, bbox):
        """Build Overpass API query for path and road ways."""
        min_lat, min_lon, max_lat, max_lon = bbox
        highway_re = "|".join(PATH_HIGHWAY_TYPES)

        query = f"""
        [out:xml][timeout:{OVERPASS_TIMEOUT}];
        (
          way["highway"~"^({highway_re})$"]({min_lat},{min_lon},{max_lat},{max_lon});
        );
        out body geom;
        """
        return query

    def download_osm_data(self, bbox):
        """Download OSM data with retry logic, rotating through mirrors.

        ``bbox`` is either a "min_lat,min_lon,max_lat,max_lon" string or a tuple.
        """
        if isinstance(bbox, str):
            bbox = self.parse_bbox(bbox)
        query = self.build_overpass_query(bbox)

        logger.info(f"Starting OSM path download for bbox: {bbox}")

        for attempt in range(self.max_retries):
            mirror = self.mirrors[attempt % len(self.mirrors)]
            try:
                logger.info(f"Attempt {attempt + 1}/{self.max_retries} via {mirror}")
                response = requests.post(
                    mirror,
                    data={'data': query},
                    timeout=OVERPASS_TIMEOUT + 30
                )

                if response.status_code == 200:
                    logger.info("OSM data downloaded successfully")
                    self.osm_data = response.text
                    self._save_osm_data()
                    return True
                elif response.status_code == 429:
                    logger.warning("Rate limited by Overpass API, retrying...")
                    time.sleep(self.retry_delay * (attempt + 1))
                else:
                    logger.error(f"Error downloading data: {response.status_code}")

            except requests.exceptions.Timeout:
                logger.warning(f"Request timeout on attempt {attempt + 1}, retrying...")
                time.sleep(self.retry_delay)
            except requests.exceptions.RequestException as e:
                logger.error(f"Network error: {e}")
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_delay)

        logger.error("Failed to download OSM data after all retries")
        return False

    def _save_osm_data(self):
        """Save OSM data to file."""
        try:
            with open(self.data_file, 'w') as f:
                f.write(self.osm_data)
            logger.info(f"OSM data saved to {self.data_file}")
        except IOError as e:
            logger.error(f"Error saving OSM data: {e}")
            raise

    def parse_osm_xml(self, file_path=None):
        """Parse OSM XML data and extract path ways.

        Handles both 'out body geom;' responses (where <nd> elements carry
        inline lat/lon attributes) and 'out body; >; out skel;' responses
        (where standalone <node> elements are present).
        """
        if file_path is None:
            file_path = self.data_file

        if not os.path.exists(file_path):
            logger.error(f"File not found: {file_path}")
            return False

        try:
            logger.info(f"Parsing OSM data from {file_path}")
            root = ET.parse(file_path).getroot()

            self.paths = []

            node_dict = {}
            for node in root.findall('node'):
                lat = node.get('lat')
                lon = node.get('lon')
                if lat is not None and lon is not None:
                    node_dict[node.get('id')] = (float(lon), float(lat))

            for way in root.findall('way'):
                tags = {tag.get('k'): tag.get('v') for tag in way.findall('tag')}

                coords = []
                for nd in way.findall('nd'):
                    lat = nd.get('lat')
                    lon = nd.get('lon')
                    if lat is not None and lon is not None:
                        coords.append((float(lon), float(lat)))
                    elif nd.get('ref') in node_dict:
                        coords.append(node_dict[nd.get('ref')])

                if len(coords) > 1:
                    self.paths.append({
                        'id': way.get('id'),
                        'name': tags.get('name', ''),
                        'highway': tags.get('highway', 'unknown'),
                        'coordinates': coords,
                    })

            logger.info(f"Parsed {len(self.paths)} path ways from OSM data")
            return True

        except ET.ParseError as e:
            logger.error(f"Error parsing XML: {e}")
            return False

    def filter_paths(self, highway=None):
        """Keep only ways whose highway tag is in ``highway``."""
        if not highway:
            return self.paths
        filtered = [p for p in self.paths if p['highway'] in highway]
        logger.info(f"Filtered to {len(filtered)} ways of type {sorted(highway)}")
        return filtered

    def to_features(self, paths=None):
        """GeoJSON LineString features, coordinates in [lon, lat] order."""
        if paths is None:
            paths = self.paths
        return [
            {
                'type': 'Feature',
                'geometry': {
                    'type': 'LineString',
                    'coordinates': [[lon, lat] for lon, lat in p['coordinates']],
                },
                'properties': {'id': p['id'], 'name': p['name'], 'highway': p['highway']},
            }
            for p in paths
        ]

    def save_features(self, output_file=None):
        """Cache the parsed ways as a GeoJSON FeatureCollection."""
        if output_file is None:
            output_file = self.json_file

        if not self.paths:
            logger.error("No paths to save. Please parse OSM data first.")
            return False

        try:
            with open(output_file, 'w') as f:
                json.dump({'type': 'FeatureCollection', 'features': self.to_features()}, f)
            logger.info(f"{len(self.paths)} path features saved to {output_file}")
            return True
        except IOError as e:
            logger.error(f"Error saving path features: {e}")
            return False


def load_features(file_path):
    """Read line features from a GeoJSON FeatureCollection (or bare feature list)."""
    with open(file_path) as f:
        data = json.load(f)
    features = data['features'] if isinstance(data, dict) else data
    logger.info(f"Loaded {len(features)} features from {file_path}")
    return features
