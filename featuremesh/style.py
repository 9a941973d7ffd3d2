"""Style hooks consumed when building and tessellating features.

A style value is either a :class:`Constant` or a :class:`Computed`
function of the geometry properties. Plain values and callables passed
by users are wrapped with :func:`as_style_value`; ``None`` means the
hook is absent and the caller falls back to its default.

Styles are grouped in three sections (``fill``, ``stroke``, ``point``).
A style may have a parent: any key it does not define is looked up in
the parent's matching section.
"""

import numpy as np
from matplotlib import colors as mcolors


def to_rgb(color):
    """Convert a color to an ``(r, g, b)`` tuple of floats in [0, 1].

    Parameters
    ----------
    color : str, tuple, or array-like
        Hex string or color name (anything ``matplotlib`` accepts), an
        RGB(A) tuple in [0, 1], or an integer RGB tuple in [0, 255].

    Returns
    -------
    tuple of float or None
        None if ``color`` is None.
    """
    if color is None:
        return None
    if isinstance(color, str):
        return mcolors.to_rgb(color)
    rgb = np.asarray(color, dtype=np.float64).ravel()[:3]
    if rgb.size != 3:
        raise ValueError(f"Expected an RGB color, got {color!r}")
    if rgb.max() > 1.0:
        rgb = rgb / 255.0
    return tuple(float(c) for c in np.clip(rgb, 0.0, 1.0))


class StyleValue:
    """Base class of style hooks."""

    __slots__ = ()

    def resolve(self, properties, *args):
        raise NotImplementedError


class Constant(StyleValue):
    __slots__ = ('value',)

    def __init__(self, value):
        self.value = value

    def __repr__(self):
        return f"Constant({self.value!r})"

    def resolve(self, properties, *args):
        return self.value


class Computed(StyleValue):
    """Hook computed from the geometry properties: ``fn(properties, *args)``."""

    __slots__ = ('fn',)

    def __init__(self, fn):
        self.fn = fn

    def __repr__(self):
        return f"Computed({self.fn!r})"

    def resolve(self, properties, *args):
        return self.fn(properties, *args)


def as_style_value(value):
    if value is None or isinstance(value, StyleValue):
        return value
    if callable(value):
        return Computed(value)
    return Constant(value)


class StyleSection:
    keys = ()

    __slots__ = ('_values', 'parent')

    def __init__(self, parent=None, **values):
        self._values = {}
        self.parent = parent
        for key, value in values.items():
            self[key] = value

    def __repr__(self):
        return f"{type(self).__name__}({self._values!r})"

    def __setitem__(self, key, value):
        if key not in self.keys:
            raise ValueError(
                f"Unknown {type(self).__name__} key {key!r}; "
                f"expected one of {', '.join(self.keys)}"
            )
        value = as_style_value(value)
        if value is None:
            self._values.pop(key, None)
        else:
            self._values[key] = value

    def __getattr__(self, name):
        if name in type(self).keys:
            return self.get(name)
        raise AttributeError(name)

    def get(self, key):
        """Return the hook for ``key``, looking through the parents."""
        value = self._values.get(key)
        if value is None and self.parent is not None:
            return self.parent.get(key)
        return value

    def resolve(self, key, properties, *args, default=None):
        value = self.get(key)
        if value is None:
            return default
        result = value.resolve(properties, *args)
        return default if result is None else result


class FillStyle(StyleSection):
    keys = ('color', 'opacity', 'base_altitude', 'extrusion_height')
    __slots__ = ()


class StrokeStyle(StyleSection):
    keys = ('color', 'opacity', 'width', 'base_altitude')
    __slots__ = ()


class PointStyle(StyleSection):
    keys = ('color', 'radius')
    __slots__ = ()


class Style:
    """Fill, stroke and point hooks with parent fallback.

    Parameters
    ----------
    fill, stroke, point : dict, optional
        Hook values per section, e.g.
        ``fill={'color': 'orange', 'extrusion_height': lambda p: p['h']}``.
    parent : Style, optional
        Style consulted for keys this one does not define.

    Examples
    --------
    >>> base = Style(fill={'color': (1, 0, 0)})
    >>> Style(parent=base).fill.resolve('color', {})
    (1, 0, 0)
    """

    def __init__(self, fill=None, stroke=None, point=None, parent=None):
        self.fill = FillStyle(**(fill or {}))
        self.stroke = StrokeStyle(**(stroke or {}))
        self.point = PointStyle(**(point or {}))
        self._parent = None
        self.parent = parent

    @property
    def parent(self):
        return self._parent

    @parent.setter
    def parent(self, parent):
        self._parent = parent
        self.fill.parent = parent.fill if parent is not None else None
        self.stroke.parent = parent.stroke if parent is not None else None
        self.point.parent = parent.point if parent is not None else None

    def set_from_geojson_properties(self, properties, feature_type):
        """Read simplestyle keys (``fill``, ``stroke``, ``marker-color``...).

        Only keys relevant to ``feature_type`` are read. Returns self.
        """
        from .feature import FeatureType

        feature_type = FeatureType.coerce(feature_type)
        if feature_type == FeatureType.POINT:
            if 'marker-color' in properties:
                self.point['color'] = properties['marker-color']
            return self

        if feature_type == FeatureType.POLYGON:
            if 'fill' in properties:
                self.fill['color'] = properties['fill']
            if 'fill-opacity' in properties:
                self.fill['opacity'] = float(properties['fill-opacity'])
        if 'stroke' in properties:
            self.stroke['color'] = properties['stroke']
        if 'stroke-width' in properties:
            self.stroke['width'] = float(properties['stroke-width'])
        if 'stroke-opacity' in properties:
            self.stroke['opacity'] = float(properties['stroke-opacity'])
        return self
