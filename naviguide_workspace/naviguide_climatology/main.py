"""
NAVIGUIDE — Climatology Overlay Engine
======================================
Command-line front end over the climatology core. Prints JSON.

Commands
--------
  point      --setting pressure --lat 45 --lon -20 [--date 2024-03-15] [--unit inHg]
  contours   --setting pressure --extent 30 60 -40 0 --spacing 4 [--step 1]
  crossings  --from 15 -60 --to 20 -55 --date 2024-09-10 --day-range 15
             [--min-wind 64] [--basin atl] [--since 1950-01-01] [--enso el_nino]

Datasets are read from CLIMATOLOGY_DATA_DIR (see config.py / storage.py).

Usage
-----
python -m naviguide_climatology.main point --setting sea_temperature --lat 10 --lon -30
"""

import argparse
import json
import logging
import sys
from datetime import date
from typing import List, Optional

from geographiclib.geodesic import Geodesic
from pydantic import BaseModel

from .config import ClimatologyConfig
from .contours import Extent, contours_geojson
from .cyclones import Basin, EnsoPhase
from .storage import load_dataset
from .units import Setting
from .wind_atlas import Coord

log = logging.getLogger("climatology")

_M_PER_NM = 1852.0


# ── Result models ─────────────────────────────────────────────────────────────

class PointReadout(BaseModel):
    setting: str
    lat:     float
    lon:     float
    date:    Optional[str] = None
    coord:   str
    unit:    Optional[str] = None
    value:   Optional[float] = None          # None = no data


class CrossingReport(BaseModel):
    route:          List[List[float]]        # [[lat, lon], [lat, lon]]
    segment_nm:     float
    date:           Optional[str] = None
    day_range:      int
    min_wind_knots: float
    basin:          Optional[str] = None
    crossings:      Optional[int] = None
    history_years:  int = 0
    per_year:       Optional[float] = None


# ── Helpers ───────────────────────────────────────────────────────────────────

def _parse_date(text: Optional[str]) -> Optional[date]:
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise SystemExit(f"Invalid date: {text}")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[logging.StreamHandler(sys.stderr)],
        format='{"time":"%(asctime)s","level":"%(levelname)s","msg":"%(message)s"}',
    )


# ── Commands ──────────────────────────────────────────────────────────────────

def cmd_point(args, dataset, config) -> dict:
    when = _parse_date(args.date)
    value = dataset.calibrated_value(args.setting, args.lat, args.lon, when,
                                     Coord(args.coord), args.unit)
    return PointReadout(
        setting = args.setting, lat = args.lat, lon = args.lon,
        date = when.isoformat() if when else None,
        coord = args.coord, unit = args.unit,
        value = None if value is None else round(value, 3),
    ).model_dump()


def cmd_contours(args, dataset, config) -> dict:
    when = _parse_date(args.date)
    isobars = dataset.isobar_map(args.setting, args.spacing, args.step, when,
                                 Coord(args.coord), args.unit, **config.contour_options)
    contours = isobars.contours(Extent(*args.extent))
    log.info(f"{args.setting}: {len(contours)} contour polylines")
    return contours_geojson(contours, args.setting)


def cmd_crossings(args, dataset, config) -> dict:
    when  = _parse_date(args.date)
    since = _parse_date(args.since)
    (lat1, lon1), (lat2, lon2) = args.start, args.end
    basin  = Basin(args.basin) if args.basin else None
    phases = [EnsoPhase(p) for p in args.enso] if args.enso else None

    dist_m = Geodesic.WGS84.Inverse(lat1, lon1, lat2, lon2)["s12"]
    count = dataset.cyclone_crossings(lat1, lon1, lat2, lon2, when, args.day_range,
                                      args.min_wind, since, basin, phases)
    years = dataset.cyclones.history_years(basin, since) if dataset.cyclones else 0
    return CrossingReport(
        route          = [[lat1, lon1], [lat2, lon2]],
        segment_nm     = round(dist_m / _M_PER_NM, 1),
        date           = when.isoformat() if when else None,
        day_range      = args.day_range,
        min_wind_knots = args.min_wind,
        basin          = basin.value if basin else None,
        crossings      = count,
        history_years  = years,
        per_year       = round(count / years, 4) if count is not None and years else None,
    ).model_dump()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="naviguide-climatology",
                                     description="Climatology overlay queries")
    sub = parser.add_subparsers(dest="command", required=True)
    settings = [s.value for s in Setting]
    coords   = [c.value for c in Coord]

    p = sub.add_parser("point", help="interpolated value at one position")
    p.add_argument("--setting", choices=settings, required=True)
    p.add_argument("--lat", type=float, required=True)
    p.add_argument("--lon", type=float, required=True)
    p.add_argument("--date", help="YYYY-MM-DD (omit for the annual mean)")
    p.add_argument("--coord", choices=coords, default=Coord.MAG.value)
    p.add_argument("--unit")
    p.set_defaults(func=cmd_point)

    c = sub.add_parser("contours", help="isolines over a viewport as GeoJSON")
    c.add_argument("--setting", choices=settings, required=True)
    c.add_argument("--extent", type=float, nargs=4, required=True,
                   metavar=("LAT_MIN", "LAT_MAX", "LON_MIN", "LON_MAX"))
    c.add_argument("--spacing", type=float, required=True)
    c.add_argument("--step", type=float, default=0.0)
    c.add_argument("--date")
    c.add_argument("--coord", choices=coords, default=Coord.MAG.value)
    c.add_argument("--unit")
    c.set_defaults(func=cmd_contours)

    x = sub.add_parser("crossings", help="historical cyclone crossings of a route segment")
    x.add_argument("--from", dest="start", type=float, nargs=2, required=True, metavar=("LAT", "LON"))
    x.add_argument("--to", dest="end", type=float, nargs=2, required=True, metavar=("LAT", "LON"))
    x.add_argument("--date")
    x.add_argument("--day-range", type=int, default=30)
    x.add_argument("--min-wind", type=float, default=34.0)
    x.add_argument("--since", help="ignore tracks before YYYY-MM-DD")
    x.add_argument("--basin", choices=[b.value for b in Basin])
    x.add_argument("--enso", nargs="+", choices=[e.value for e in EnsoPhase])
    x.set_defaults(func=cmd_crossings)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args   = build_parser().parse_args(argv)
    config = ClimatologyConfig.from_env()
    _setup_logging(config.log_level)

    dataset = load_dataset(config)
    try:
        result = args.func(args, dataset, config)
    except ValueError as exc:
        log.error(f"{args.command} failed: {exc}")
        return 2
    finally:
        dataset.close()
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
