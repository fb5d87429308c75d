"""
NAVIGUIDE Climatology — Configuration
=====================================
Settings come from the environment (a ``.env`` next to the workspace is
loaded first). Every value has a working default.

  CLIMATOLOGY_DATA_DIR           directory holding the dataset files
  CLIMATOLOGY_CONTOUR_CELLS      lattice cells across the viewport
  CLIMATOLOGY_CONTOUR_MIN_STEP   finest lattice step, degrees
  CLIMATOLOGY_STITCH_TOLERANCE   endpoint match tolerance, degrees
  CLIMATOLOGY_LOG_LEVEL          logging level name
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv(Path(__file__).resolve().parents[1] / ".env")


class ClimatologyConfig(BaseModel):
    data_dir:           Path  = Path("data")
    contour_cells:      int   = Field(48, gt=0)
    contour_min_step:   float = Field(0.25, gt=0)
    stitch_tolerance:   float = Field(1e-6, gt=0)
    log_level:          str   = "INFO"

    @classmethod
    def from_env(cls) -> "ClimatologyConfig":
        env = {
            "data_dir":         os.getenv("CLIMATOLOGY_DATA_DIR"),
            "contour_cells":    os.getenv("CLIMATOLOGY_CONTOUR_CELLS"),
            "contour_min_step": os.getenv("CLIMATOLOGY_CONTOUR_MIN_STEP"),
            "stitch_tolerance": os.getenv("CLIMATOLOGY_STITCH_TOLERANCE"),
            "log_level":        os.getenv("CLIMATOLOGY_LOG_LEVEL"),
        }
        return cls(**{k: v for k, v in env.items() if v})

    @property
    def contour_options(self) -> dict:
        return {
            "cells":     self.contour_cells,
            "min_step":  self.contour_min_step,
            "tolerance": self.stitch_tolerance,
        }
