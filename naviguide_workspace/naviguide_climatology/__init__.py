"""
NAVIGUIDE — Climatology Overlays
================================
Monthly climatology grids (wind roses, currents, pressure, temperatures,
cloud, precipitation, humidity, lightning, sea depth), their contour maps,
and historical tropical-cyclone crossing counts for route planning.
"""

from .contours import Contour, Extent, IsobarMap, extract_contours
from .cyclones import Basin, Cyclone, CycloneState, CycloneTrackIndex, EnsoPhase
from .dataset import ClimateDataset
from .grid import DatasetLoadError, GridResolution, GriddedField
from .temporal import locate
from .units import Setting
from .wind_atlas import Coord, WindAtlasGrid, WindDistribution

__all__ = [
    "Basin", "ClimateDataset", "Contour", "Coord", "Cyclone", "CycloneState",
    "CycloneTrackIndex", "DatasetLoadError", "EnsoPhase", "Extent",
    "GridResolution", "GriddedField", "IsobarMap", "Setting", "WindAtlasGrid",
    "WindDistribution", "extract_contours", "locate",
]
