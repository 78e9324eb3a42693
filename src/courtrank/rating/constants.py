"""
Rating system constants.

Per-season parameters (K-factors, weights, walkover impacts...) are stored
and versioned; the values here are the process-wide defaults used when a
season has no stored version, plus the fixed constants of the
expected-score curve.

K factor: how much a single result moves a rating.
  - New players (fewer than K_FACTOR_THRESHOLD matches) use K_FACTOR_NEW
  - Established players use K_FACTOR_ESTABLISHED

Expected score (Glicko-1):
  E = 1 / (1 + 10^(-g(RD) * (R_A - R_B) / 400))
  g(RD) = 1 / sqrt(1 + 3 * q^2 * RD^2 / pi^2),  q = ln(10) / 400

g() shrinks the rating difference when either side is uncertain, so a
result between two provisional players is treated as less predictable.
"""

import math

# Default parameters for a season without a stored version
DEFAULT_INITIAL_RATING = 1500
DEFAULT_INITIAL_RD = 350
DEFAULT_K_FACTOR_NEW = 40
DEFAULT_K_FACTOR_ESTABLISHED = 20
DEFAULT_K_FACTOR_THRESHOLD = 30
DEFAULT_SINGLES_WEIGHT = 1.0
DEFAULT_DOUBLES_WEIGHT = 1.0
DEFAULT_ONE_SET_MATCH_WEIGHT = 0.5
DEFAULT_WALKOVER_WIN_IMPACT = 0.5
DEFAULT_WALKOVER_LOSS_IMPACT = 1.0
DEFAULT_PROVISIONAL_THRESHOLD = 10

# Expected-score curve
GLICKO_SCALE = 400
GLICKO_Q = math.log(10) / GLICKO_SCALE

# RD after each match: max(MIN_RD, rd * RD_DECAY)
MIN_RD = 50
RD_DECAY = 0.9

# Bounds for placement ratings
MIN_RATING = 800
MAX_RATING = 8000

# Questionnaire scale anchor. Estimates are produced around this value and
# re-anchored at the season's initial rating on placement.
QUESTIONNAIRE_BASE_RATING = 1500
