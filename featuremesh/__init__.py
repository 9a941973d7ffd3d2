from .errors import (
    FeatureMeshError,
    UnsupportedFeatureType,
    UnsupportedCRS,
    FeatureBufferError,
    AliasedFeatureError,
    IndexOverflowWarning,
)
from .extent import Extent, AltitudeRange
from .coordinates import Coordinates, format_crs, project
from .frame import LocalCoordinateFrame
from .style import Style, Constant, Computed, to_rgb
from .feature import (
    FeatureType,
    SubGeometryIndex,
    FeatureGeometry,
    Feature,
    FeatureCollection,
)
from .triangulate import triangulate
from .convert import (
    PrimitiveKind,
    MeshPrimitive,
    ConvertOptions,
    feature_to_points,
    feature_to_line,
    feature_to_polygon,
    feature_to_extruded_polygon,
    feature_to_primitive,
    features_to_primitives,
    convert,
)
from .geojson import parse as parse_geojson, read_crs

__version__ = "0.1.0"
