import json
import logging
from typing import Dict, NamedTuple, Optional

import geopandas as gpd
import topojson

logger = logging.getLogger(__name__)

JSON_HEADERS = {'Content-Type': 'application/json'}


class PreparedResponse(NamedTuple):
    """Everything needed to answer a request; this is what gets cached."""

    status: int
    headers: Dict[str, str]
    body: Optional[str]


def feature_collection(features):
    return {'type': 'FeatureCollection', 'features': list(features)}


def to_topojson(collection):
    frame = gpd.GeoDataFrame.from_features(collection['features'], crs='EPSG:4326')
    topology = topojson.Topology(frame, object_name='collection', prequantize=False)
    return json.loads(topology.to_json())


def prepare_response(data, fmt=None):
    """Serialize `data` as JSON, or as TopoJSON when asked for and it has features.

    No data gives an empty 204 response.
    """
    if data is None:
        return PreparedResponse(204, {}, None)
    if fmt == 'topojson' and isinstance(data, dict) and data.get('features'):
        logger.debug('Converting %d features to topojson', len(data['features']))
        return PreparedResponse(200, dict(JSON_HEADERS), json.dumps(to_topojson(data), default=str))
    return PreparedResponse(200, dict(JSON_HEADERS), json.dumps(data, default=str))
