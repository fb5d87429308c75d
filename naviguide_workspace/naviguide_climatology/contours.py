"""
NAVIGUIDE Climatology — Contour Extraction (isobar maps)
========================================================
Isolines of any scalar climatology field over a map viewport.

Algorithm overview
------------------
1. Lay a sampling lattice over the viewport; the lattice step grows with the
   viewport span (coarser when zoomed out).
2. Sample every lattice node once through the caller's value function.
3. Marching squares: for each lattice cell and each contour level inside the
   cell's value range, emit the segment joining the edge crossings
   (linear interpolation by value). Saddle cells are resolved with the
   cell-centre average. Cells with a missing corner are skipped, so no
   contour ever spans a data gap.
4. Stitch segments of the same level into polylines when their endpoints
   coincide; whatever cannot be joined is emitted as a loose segment.

Each call works on local state only and returns fresh geometry.
"""

import logging
import math
from collections import defaultdict
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

log = logging.getLogger("climatology.contours")

Point       = Tuple[float, float]                  # (lat, lon)
ValueFunc   = Callable[[float, float], Optional[float]]


class Extent(NamedTuple):
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    @property
    def lon_span(self) -> float:
        span = self.lon_max - self.lon_min
        return span + 360.0 if span < 0 else span

    @property
    def lat_span(self) -> float:
        return self.lat_max - self.lat_min


class Contour(NamedTuple):
    level:  float
    points: List[Point]

    @property
    def closed(self) -> bool:
        return len(self.points) > 2 and self.points[0] == self.points[-1]


# ── Lattice ──────────────────────────────────────────────────────────────────

def lattice_step(extent: Extent, cells: int = 48, min_step: float = 0.25) -> float:
    """Lattice spacing in degrees: the wider the viewport, the coarser the step."""
    span = max(extent.lat_span, extent.lon_span)
    return max(span / max(cells, 1), min_step)


def _axis(start: float, span: float, step: float) -> List[float]:
    n = max(int(math.ceil(span / step - 1e-9)), 1)
    return [start + i * span / n for i in range(n + 1)]


def contour_levels(lo: float, hi: float, spacing: float, step: float) -> List[float]:
    """Multiples of *spacing* inside [lo, hi], quantized to *step*."""
    levels = []
    k = math.ceil(lo / spacing)
    while k * spacing <= hi:
        level = k * spacing
        if step > 0:
            level = round(level / step) * step
        if lo <= level <= hi and (not levels or level != levels[-1]):
            levels.append(level)
        k += 1
    return levels


# Marching-squares table. Corners: 0=a (lat0,lon0), 1=b (lat0,lon1),
# 2=c (lat1,lon1), 3=d (lat1,lon0); bit set = corner at/above level.
# Edges: 0=a-b, 1=b-c, 2=c-d, 3=d-a.
_EDGE_CORNERS = ((0, 1), (1, 2), (2, 3), (3, 0))
_SEGMENTS = {
    1: ((3, 0),),  2: ((0, 1),),  3: ((3, 1),),  4: ((1, 2),),
    6: ((0, 2),),  7: ((3, 2),),  8: ((2, 3),),  9: ((0, 2),),
    11: ((1, 2),), 12: ((1, 3),), 13: ((0, 1),), 14: ((3, 0),),
}
# saddles: (centre above level, centre below level)
_SADDLES = {
    5:  (((0, 1), (2, 3)), ((3, 0), (1, 2))),
    10: (((3, 0), (1, 2)), ((0, 1), (2, 3))),
}


def _sample_lattice(func: ValueFunc, lats: List[float],
                    lons: List[float]) -> List[List[Optional[float]]]:
    return [[func(lat, lon) for lon in lons] for lat in lats]


def _segments(lats, lons, values, spacing, step) -> Dict[float, List[Tuple[Point, Point]]]:
    by_level: Dict[float, List[Tuple[Point, Point]]] = defaultdict(list)

    def node(i, j):
        return (lats[i], lons[j])

    for i in range(len(lats) - 1):
        for j in range(len(lons) - 1):
            nodes = ((i, j), (i, j + 1), (i + 1, j + 1), (i + 1, j))
            vals  = [values[r][c] for r, c in nodes]
            if any(v is None or math.isnan(v) for v in vals):
                continue
            lo, hi = min(vals), max(vals)
            if lo == hi:
                continue
            for level in contour_levels(lo, hi, spacing, step):
                case = sum(1 << k for k, v in enumerate(vals) if v >= level)
                if case in _SADDLES:
                    above = sum(vals) / 4.0 >= level
                    pairs = _SADDLES[case][0 if above else 1]
                elif case in _SEGMENTS:
                    pairs = _SEGMENTS[case]
                else:
                    continue

                def crossing(edge):
                    # canonical orientation so neighbouring cells agree bit-for-bit
                    p, q = sorted((nodes[_EDGE_CORNERS[edge][0]], nodes[_EDGE_CORNERS[edge][1]]))
                    vp, vq = values[p[0]][p[1]], values[q[0]][q[1]]
                    t = (level - vp) / (vq - vp)
                    (lat_p, lon_p), (lat_q, lon_q) = node(*p), node(*q)
                    return (lat_p + t * (lat_q - lat_p), lon_p + t * (lon_q - lon_p))

                for e1, e2 in pairs:
                    start, end = crossing(e1), crossing(e2)
                    if start != end:
                        by_level[level].append((start, end))
    return by_level


# ── Stitching ────────────────────────────────────────────────────────────────

def stitch(segments: List[Tuple[Point, Point]], tolerance: float = 1e-6) -> List[List[Point]]:
    """
    Join segments sharing endpoints into polylines.

    Every segment is consumed exactly once, so the walk always terminates;
    segments that match nothing come back as two-point polylines.
    """
    def key(p: Point):
        return (round(p[0] / tolerance), round(p[1] / tolerance))

    ends: Dict[tuple, List[int]] = defaultdict(list)
    for idx, (a, b) in enumerate(segments):
        ends[key(a)].append(idx)
        ends[key(b)].append(idx)

    used = [False] * len(segments)

    def next_segment(point: Point) -> Optional[Tuple[int, Point]]:
        for idx in ends[key(point)]:
            if not used[idx]:
                a, b = segments[idx]
                return idx, (b if key(a) == key(point) else a)
        return None

    lines: List[List[Point]] = []
    for idx, (a, b) in enumerate(segments):
        if used[idx]:
            continue
        used[idx] = True
        line = [a, b]
        # grow forward from the tail, then backward from the head
        nxt = next_segment(line[-1])
        while nxt is not None:
            used[nxt[0]] = True
            line.append(nxt[1])
            nxt = next_segment(line[-1])
        prev = next_segment(line[0])
        while prev is not None:
            used[prev[0]] = True
            line.insert(0, prev[1])
            prev = next_segment(line[0])
        lines.append(line)
    return lines


# ── Public API ───────────────────────────────────────────────────────────────

def extract_contours(
    func:      ValueFunc,
    extent:    Extent,
    spacing:   float,
    step:      float = 0.0,
    cells:     int   = 48,
    min_step:  float = 0.25,
    tolerance: float = 1e-6,
) -> List[Contour]:
    """
    Contour polylines of *func* over *extent*, ordered by level.

    spacing  : distance between contour levels (same units as *func*)
    step     : quantization of level values (0 keeps exact multiples of spacing)
    """
    if spacing <= 0:
        raise ValueError(f"contour spacing must be positive, got {spacing}")
    if step < 0:
        raise ValueError(f"contour step must not be negative, got {step}")

    d    = lattice_step(extent, cells, min_step)
    lats = _axis(extent.lat_min, extent.lat_span, d)
    lons = _axis(extent.lon_min, extent.lon_span, d)
    values = _sample_lattice(func, lats, lons)

    contours: List[Contour] = []
    for level, segs in sorted(_segments(lats, lons, values, spacing, step).items()):
        lines = stitch(segs, tolerance)
        loose = sum(1 for line in lines if len(line) == 2)
        if loose:
            log.debug(f"level {level}: {loose} unjoined segment(s) of {len(segs)}")
        contours.extend(Contour(level, line) for line in lines)
    return contours


def _day(date) -> Optional[Tuple[int, int, int]]:
    if date is None:
        return None
    return (date.year, date.month, date.day)


class IsobarMap:
    """
    Contour settings for one overlay (e.g. pressure every 4 mbar).

    The map owns no geometry: ``contours()`` recomputes for the viewport it is
    given, so one instance can serve several threads.

    ``unit``, ``date`` and ``coord`` describe what *func* was bound to; a
    cached map is only reusable while all of them still match.
    """

    def __init__(self, name: str, spacing: float, step: float, func: ValueFunc,
                 cells: int = 48, min_step: float = 0.25, tolerance: float = 1e-6,
                 unit: Optional[str] = None, date=None, coord=None):
        self.name      = name
        self.spacing   = spacing
        self.step      = step
        self.func      = func
        self.cells     = cells
        self.min_step  = min_step
        self.tolerance = tolerance
        self.unit      = unit
        self.date      = date
        self.coord     = coord

    def same_settings(self, spacing: float, step: float, unit: Optional[str] = None,
                      date=None, coord=None) -> bool:
        return (spacing == self.spacing and step == self.step
                and unit == self.unit and _day(date) == _day(self.date)
                and coord == self.coord)

    def contours(self, extent: Extent) -> List[Contour]:
        return extract_contours(self.func, extent, self.spacing, self.step,
                                self.cells, self.min_step, self.tolerance)


def contours_geojson(contours: List[Contour], name: str = "") -> Dict:
    """
    GeoJSON FeatureCollection (LineStrings, [lon, lat] order) for the map
    renderer. Each Feature carries its ``level``.
    """
    features = []
    for c in contours:
        features.append({
            "type": "Feature",
            "properties": {"level": c.level, "closed": c.closed},
            "geometry": {
                "type": "LineString",
                "coordinates": [[lon, lat] for lat, lon in c.points],
            },
        })
    return {
        "type": "FeatureCollection",
        "metadata": {
            "source":   "NAVIGUIDE Climatology",
            "layer":    name,
            "contours": len(contours),
            "levels":   sorted({c.level for c in contours}),
        },
        "features": features,
    }
