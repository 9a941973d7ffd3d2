"""Exception and warning types raised by featuremesh."""


class FeatureMeshError(Exception):
    """Base class for featuremesh errors."""


class UnsupportedFeatureType(FeatureMeshError, ValueError):
    """Geometry or feature type is not one of point, line or polygon."""


class UnsupportedCRS(FeatureMeshError, ValueError):
    """The ``crs`` member of a GeoJSON document cannot be interpreted."""


class FeatureBufferError(FeatureMeshError, IndexError):
    """A sub-geometry range points outside of its feature buffer."""


class AliasedFeatureError(FeatureMeshError, TypeError):
    """Attempt to grow a feature that aliases another feature's buffers."""


class IndexOverflowWarning(UserWarning):
    """Vertex indices no longer fit in the 16-bit index buffer."""
