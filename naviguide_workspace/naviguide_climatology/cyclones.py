"""
NAVIGUIDE Climatology — Tropical Cyclone Track Index
====================================================
Historical storm tracks grouped by ocean basin, with one question answered
fast: how often has a cyclone of at least W knots crossed this route segment
around this time of year?

Geometry
--------
Every consecutive pair of track states is a straight segment in lon/lat,
held in a per-basin shapely ``STRtree``. Longitudes are normalised to
[-180, 180); a segment crossing the antimeridian is unwrapped the short way
and indexed together with its ±360° copy, and queries get the same treatment,
so both sides always share one convention.

Statistics
----------
The result is a raw count of crossings; a track state lying exactly on
the route is one crossing, not one per adjacent segment. Dates compare by
day of year only, so all historical seasons are aggregated; divide by the
years of history (``crossing_frequency``) for a yearly rate.

Basins (theatres)
-----------------
  wpa  West Pacific        epa  East Pacific        spa  South Pacific
  atl  Atlantic            she  South Indian        nio  North Indian
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Set, Tuple

import shapely.affinity
import shapely.geometry
import shapely.strtree

from .temporal import day_distance, day_of_year

log = logging.getLogger("climatology.cyclones")


class Basin(str, Enum):
    WEST_PACIFIC  = "wpa"
    EAST_PACIFIC  = "epa"
    SOUTH_PACIFIC = "spa"
    ATLANTIC      = "atl"
    SOUTH_INDIAN  = "she"
    NORTH_INDIAN  = "nio"


class StormCategory(str, Enum):
    TROPICAL      = "tropical"
    SUBTROPICAL   = "subtropical"
    EXTRATROPICAL = "extratropical"
    WAVE          = "wave"
    REMNANT       = "remnant"
    UNKNOWN       = "unknown"


class EnsoPhase(str, Enum):
    EL_NINO = "el_nino"
    LA_NINA = "la_nina"
    NEUTRAL = "neutral"


ENSO_THRESHOLD = 0.5

# Saffir-Simpson lower bounds (knots) for categories 1–5
_SAFFIR_SIMPSON = (64, 83, 96, 113, 137)


# ── Track model ──────────────────────────────────────────────────────────────

class CycloneDateTime(NamedTuple):
    """Minimal timestamp; orders as a tuple (year, month, day, hour)."""
    year:  int
    month: int
    day:   int
    hour:  int = 0

    @classmethod
    def from_date(cls, d) -> "CycloneDateTime":
        if isinstance(d, cls):
            return d
        return cls(d.year, d.month, d.day, getattr(d, "hour", 0))

    @property
    def day_of_year(self) -> int:
        return day_of_year(self.month, self.day)


class CycloneState(NamedTuple):
    timestamp:  CycloneDateTime
    latitude:   float
    longitude:  float
    wind_knots: float
    pressure:   Optional[float] = None          # central pressure, mbar
    category:   StormCategory   = StormCategory.UNKNOWN

    @property
    def saffir_simpson(self) -> int:
        """1–5 for hurricanes, 0 for tropical storms, -1 below 34 kn."""
        if self.wind_knots < 34:
            return -1
        return sum(1 for bound in _SAFFIR_SIMPSON if self.wind_knots >= bound)


@dataclass(frozen=True)
class Cyclone:
    states: Tuple[CycloneState, ...]
    name:   str = ""

    def __post_init__(self):
        states = tuple(self.states)
        object.__setattr__(self, "states", states)
        if not states:
            raise ValueError(f"cyclone {self.name!r} has no states")
        for a, b in zip(states, states[1:]):
            if not a.timestamp < b.timestamp:
                raise ValueError(
                    f"cyclone {self.name!r}: states not strictly time-ordered "
                    f"at {tuple(b.timestamp)}"
                )

    @property
    def max_wind_knots(self) -> float:
        return max(s.wind_knots for s in self.states)

    @property
    def years(self) -> Tuple[int, int]:
        return (self.states[0].timestamp.year, self.states[-1].timestamp.year)


class ElNinoYear(NamedTuple):
    year:   int
    months: Tuple[float, ...]     # 12 monthly ENSO index values (NaN = unknown)

    def phase(self, month: int) -> Optional[EnsoPhase]:
        value = self.months[month - 1]
        if value is None or math.isnan(value):
            return None
        if value >= ENSO_THRESHOLD:
            return EnsoPhase.EL_NINO
        if value <= -ENSO_THRESHOLD:
            return EnsoPhase.LA_NINA
        return EnsoPhase.NEUTRAL


# ── Geometry helpers ─────────────────────────────────────────────────────────

def _normalize_lon(lon: float) -> float:
    return (lon + 180.0) % 360.0 - 180.0


def _segment_lines(lat1: float, lon1: float,
                   lat2: float, lon2: float) -> List[shapely.geometry.LineString]:
    """
    The segment as one or two LineStrings in [-180, 180) space: unwrapped
    the short way round, plus a ±360° copy when it leaves that range.
    """
    # endpoint order must not change the unwrap (matters at exactly 180° apart)
    (lon1, lat1), (lon2, lat2) = sorted([(_normalize_lon(lon1), lat1),
                                         (_normalize_lon(lon2), lat2)])
    lon2 = lon1 + _normalize_lon(lon2 - lon1)
    line = shapely.geometry.LineString([(lon1, lat1), (lon2, lat2)])
    lines = [line]
    if max(lon1, lon2) >= 180.0:
        lines.append(shapely.affinity.translate(line, xoff=-360.0))
    elif min(lon1, lon2) < -180.0:
        lines.append(shapely.affinity.translate(line, xoff=360.0))
    return lines


def _same_position(lat1: float, lon1: float, lat2: float, lon2: float) -> bool:
    return lat1 == lat2 and _normalize_lon(lon1) == _normalize_lon(lon2)


class _Segment(NamedTuple):
    track:      int
    wind_knots: float              # stronger of the two states
    crossing:   CycloneState       # later state of the pair
    start:      shapely.geometry.Point
    previous:   int = -1           # preceding segment of the same track


class _BasinIndex:
    """Segments + STRtree of one basin. Built once, read-only afterwards."""

    def __init__(self, tracks: List[Cyclone]):
        self.tracks   = tracks
        self.segments: List[_Segment] = []
        owners: List[int] = []
        lines = []
        for t, cyclone in enumerate(tracks):
            previous = -1
            for a, b in zip(cyclone.states, cyclone.states[1:]):
                if _same_position(a.latitude, a.longitude, b.latitude, b.longitude):
                    continue
                seg = len(self.segments)
                start = shapely.geometry.Point(_normalize_lon(a.longitude), a.latitude)
                self.segments.append(
                    _Segment(t, max(a.wind_knots, b.wind_knots), b, start, previous))
                previous = seg
                for line in _segment_lines(a.latitude, a.longitude, b.latitude, b.longitude):
                    lines.append(line)
                    owners.append(seg)
        self.owners = owners
        self.tree   = shapely.strtree.STRtree(lines) if lines else None

    def intersecting(self, query_lines) -> Set[int]:
        hits: Set[int] = set()
        if self.tree is None:
            return hits
        for line in query_lines:
            for idx in self.tree.query(line, predicate="intersects"):
                hits.add(self.owners[int(idx)])
        return hits


# ── Index ────────────────────────────────────────────────────────────────────

class CycloneTrackIndex:
    """
    Read-only index of historical tracks per basin.

    Usage
    -----
    index = CycloneTrackIndex({Basin.ATLANTIC: tracks})
    n = index.count_crossings(15, -60, 20, -55, date(2024, 9, 10),
                              day_range=15, min_wind_knots=64)
    """

    def __init__(self, tracks_by_basin: Mapping[Basin, Iterable[Cyclone]],
                 el_nino_years: Optional[Mapping[int, ElNinoYear]] = None):
        self._basins: Dict[Basin, _BasinIndex] = {}
        for basin, tracks in tracks_by_basin.items():
            basin = Basin(basin)
            self._basins[basin] = _BasinIndex(list(tracks))
            log.info(f"{basin.value}: {len(self._basins[basin].tracks)} tracks, "
                     f"{len(self._basins[basin].segments)} segments indexed")
        self.el_nino_years: Dict[int, ElNinoYear] = dict(el_nino_years or {})

    @property
    def basins(self) -> List[Basin]:
        return list(self._basins)

    def tracks(self, basin: Optional[Basin] = None) -> List[Cyclone]:
        return [c for b in self._selected(basin) for c in self._basins[b].tracks]

    def _selected(self, basin: Optional[Basin]) -> List[Basin]:
        if basin is None:
            return list(self._basins)
        basin = Basin(basin)
        return [basin] if basin in self._basins else []

    def _enso_phase(self, state: CycloneState) -> Optional[EnsoPhase]:
        record = self.el_nino_years.get(state.timestamp.year)
        return record.phase(state.timestamp.month) if record else None

    # ── Crossing query ───────────────────────────────────────────────────────

    def count_crossings(
        self,
        lat1:           float,
        lon1:           float,
        lat2:           float,
        lon2:           float,
        date=None,
        day_range:      int = 30,
        min_wind_knots: float = 0.0,
        data_start=None,
        basin:          Optional[Basin] = None,
        enso_phases:    Optional[Iterable[EnsoPhase]] = None,
    ) -> int:
        """
        Number of historical track segments crossing the route segment
        (lat1, lon1) → (lat2, lon2).

        Two consecutive segments of one track that meet on the route (a
        track state lying exactly on it) count as a single crossing.

        A track segment counts when either of its states reaches
        *min_wind_knots*, its later state falls within *day_range* days of
        *date*'s day of year (any year; ``date=None`` keeps all seasons), is
        on/after *data_start*, and (with *enso_phases*) occurred in one of
        those ENSO phases. ``basin=None`` searches every basin.
        """
        if _same_position(lat1, lon1, lat2, lon2):
            return 0

        query_lines = _segment_lines(lat1, lon1, lat2, lon2)
        target_doy  = day_of_year(date.month, date.day) if date is not None else None
        start       = CycloneDateTime.from_date(data_start) if data_start is not None else None
        phases      = {EnsoPhase(p) for p in enso_phases} if enso_phases is not None else None

        count = 0
        for b in self._selected(basin):
            index = self._basins[b]
            counted: Set[int] = set()
            for seg_idx in sorted(index.intersecting(query_lines)):
                seg = index.segments[seg_idx]
                if seg.wind_knots < min_wind_knots:
                    continue
                stamp = seg.crossing.timestamp
                if target_doy is not None and day_distance(stamp.day_of_year, target_doy) > day_range:
                    continue
                if start is not None and stamp < start:
                    continue
                if phases is not None and self._enso_phase(seg.crossing) not in phases:
                    continue
                counted.add(seg_idx)
                # a track touching the route at a vertex is one passage, not two
                if seg.previous in counted and any(line.intersects(seg.start) for line in query_lines):
                    continue
                count += 1
        return count

    def history_years(self, basin: Optional[Basin] = None, data_start=None) -> int:
        """Years of record covered by the selected basin(s)."""
        first = last = None
        for cyclone in self.tracks(basin):
            y0, y1 = cyclone.years
            first = y0 if first is None else min(first, y0)
            last  = y1 if last is None else max(last, y1)
        if first is None:
            return 0
        if data_start is not None:
            first = max(first, data_start.year)
        return max(last - first + 1, 0)

    def crossing_frequency(self, lat1: float, lon1: float, lat2: float, lon2: float,
                           date=None, day_range: int = 30, min_wind_knots: float = 0.0,
                           data_start=None, basin: Optional[Basin] = None,
                           enso_phases: Optional[Iterable[EnsoPhase]] = None) -> float:
        """Crossings per year of history (0.0 with no history)."""
        years = self.history_years(basin, data_start)
        if years == 0:
            return 0.0
        count = self.count_crossings(lat1, lon1, lat2, lon2, date, day_range,
                                     min_wind_knots, data_start, basin, enso_phases)
        return count / years

    # ── Overlay export ───────────────────────────────────────────────────────

    def tracks_geojson(self, basin: Optional[Basin] = None,
                       min_wind_knots: float = 0.0) -> Dict:
        """Tracks as GeoJSON LineStrings ([lon, lat] order) for the map overlay."""
        features = []
        for b in self._selected(basin):
            for cyclone in self._basins[b].tracks:
                if cyclone.max_wind_knots < min_wind_knots:
                    continue
                first = cyclone.states[0]
                features.append({
                    "type": "Feature",
                    "properties": {
                        "name":           cyclone.name,
                        "basin":          b.value,
                        "start":          "%04d-%02d-%02dT%02d:00" % tuple(first.timestamp),
                        "max_wind_knots": cyclone.max_wind_knots,
                        "saffir_simpson": max(s.saffir_simpson for s in cyclone.states),
                    },
                    "geometry": {
                        "type": "LineString" if len(cyclone.states) > 1 else "Point",
                        "coordinates": (
                            [[s.longitude, s.latitude] for s in cyclone.states]
                            if len(cyclone.states) > 1
                            else [first.longitude, first.latitude]
                        ),
                    },
                })
        return {
            "type": "FeatureCollection",
            "metadata": {
                "source": "NAVIGUIDE Climatology cyclone tracks",
                "basins": [b.value for b in self._selected(basin)],
                "tracks": len(features),
            },
            "features": features,
        }
