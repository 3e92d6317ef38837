"""
Configuration constants for the grade yield calculator.

Values that depend on the deployment (where averages are stored, how long
to wait before saving) can be overridden through environment variables.
"""

import os
from pathlib import Path

# =============================================================================
# GRADING SCALE
# =============================================================================

# Marks are on the 20-point scale used throughout the HNS curriculum.
GRADE_MIN = 0.0
GRADE_MAX = 20.0

# A semester (or unit) average at or above this mark meets the HNS standard.
PASS_MARK = 10.0

# Score components, in the order the weights are listed:
#   td   = continuous assessment (travaux dirigés)
#   tp   = practical work (travaux pratiques)
#   exam = final exam
SCORE_COMPONENTS = ("td", "tp", "exam")


# =============================================================================
# PERSISTENCE
# =============================================================================

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("HNS_DATA_DIR", BASE_DIR / "data"))
AVERAGES_CSV = DATA_DIR / "semester_averages.csv"

# Quiet period after the last edit before the semester average is saved.
DEBOUNCE_SECONDS = float(os.getenv("HNS_SAVE_DEBOUNCE_SECONDS", "1.5"))


# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.getenv("HNS_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
