# sample_data.py
"""Generate small GeoParquet layers to run the server against.

Polygons are a regular grid over the bounding box (coarser grids for the
higher aggregate levels), reports are random points created over the last day.
"""
import logging
import os
import time

import geopandas as gpd
import numpy as np
import pandas as pd
from shapely.geometry import LineString, box

from .config import Config

logger = logging.getLogger(__name__)

# --- Configuration ---
# Jakarta, lon/lat
BBOX = (106.68, -6.37, 106.98, -6.08)
CRS_EPSG_CODE = 4326
GRID_SIZES = {'city': 1, 'subdistrict': 3, 'village': 6, 'rw': 10}
# --- End Configuration ---


def polygon_grid(cells, bbox=BBOX, label='Area'):
    min_x, min_y, max_x, max_y = bbox
    xs = np.linspace(min_x, max_x, cells + 1)
    ys = np.linspace(min_y, max_y, cells + 1)
    records = []
    for row in range(cells):
        for col in range(cells):
            pkey = row * cells + col + 1
            records.append({
                'pkey': pkey,
                'area_name': f'{label} {pkey:03d}',
                'geometry': box(xs[col], ys[row], xs[col + 1], ys[row + 1]),
            })
    return gpd.GeoDataFrame(records, geometry='geometry', crs=f'EPSG:{CRS_EPSG_CODE}')


def random_reports(count, rng, now, with_text=True, bbox=BBOX, period=86400):
    min_x, min_y, max_x, max_y = bbox
    df = pd.DataFrame({
        'pkey': np.arange(1, count + 1),
        'created_at': pd.to_datetime(now - rng.uniform(0, period, count), unit='s', utc=True),
        'longitude': rng.uniform(min_x, max_x, count),
        'latitude': rng.uniform(min_y, max_y, count),
    })
    if with_text:
        df['text'] = [f'Flood report #{pkey}' for pkey in df['pkey']]
    gdf = gpd.GeoDataFrame(
        df.drop(columns=['longitude', 'latitude']),
        geometry=gpd.points_from_xy(x=df['longitude'], y=df['latitude']),
        crs=f'EPSG:{CRS_EPSG_CODE}',
    )
    # Spatially sort the points so nearby reports share row groups
    gdf['hilbert'] = gdf.geometry.hilbert_distance()
    return gdf.sort_values('hilbert').drop(columns=['hilbert'])


def infrastructure_layers(rng, bbox=BBOX):
    min_x, min_y, max_x, max_y = bbox
    waterways = gpd.GeoDataFrame(
        {
            'name': [f'Kali {i + 1}' for i in range(5)],
            'geometry': [
                LineString([(x, min_y), (x + rng.uniform(-0.02, 0.02), max_y)])
                for x in np.linspace(min_x + 0.03, max_x - 0.03, 5)
            ],
        },
        crs=f'EPSG:{CRS_EPSG_CODE}',
    )

    def points(name, count):
        return gpd.GeoDataFrame(
            {'name': [f'{name} {i + 1}' for i in range(count)]},
            geometry=gpd.points_from_xy(rng.uniform(min_x, max_x, count), rng.uniform(min_y, max_y, count)),
            crs=f'EPSG:{CRS_EPSG_CODE}',
        )

    return {'waterways': waterways, 'pumps': points('Pump', 12), 'floodgates': points('Floodgate', 8)}


def generate_sample_layers(output_dir, config=None, confirmed=300, unconfirmed=1200, seed=0, now=None):
    """Write one <table>.parquet per configured layer and return {table: path}."""
    config = config or {key: getattr(Config, key) for key in dir(Config) if key.isupper()}
    rng = np.random.default_rng(seed)
    now = time.time() if now is None else now
    os.makedirs(output_dir, exist_ok=True)

    layers = {
        config['TBL_REPORTS']: random_reports(confirmed, rng, now),
        config['TBL_REPORTS_UNCONFIRMED']: random_reports(unconfirmed, rng, now, with_text=False),
    }
    for level, table in config['AGGREGATE_LEVELS'].items():
        layers[table] = polygon_grid(GRID_SIZES.get(level, 4), label=level.capitalize())
    infrastructure = infrastructure_layers(rng)
    for name, table in config['INFRASTRUCTURE_TBLS'].items():
        if name in infrastructure:
            layers[table] = infrastructure[name]

    paths = {}
    for table, gdf in layers.items():
        path = os.path.join(output_dir, f'{table}.parquet')
        gdf.to_parquet(path, index=False, compression='snappy')
        logger.info('Wrote %d features to %s', len(gdf), path)
        paths[table] = path
    return paths
