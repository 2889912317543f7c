"""
Rating engine constants.

K factor: Controls rating volatility (how much ratings change per match)
  - 32 is the standard club value for moderate volatility

Spread: The 400-point scale of classic chess Elo. A 400 point gap means
the stronger player is expected to score about 10 times as often.

Decay and activity bonus:
  - Players inactive for more than INACTIVITY_THRESHOLD_DAYS lose
    DECAY_POINTS_PER_PERIOD for every started DECAY_PERIOD_DAYS beyond it
  - Decay never pushes a rating below the run's floor, which is the lower
    of ABSOLUTE_MINIMUM_RATING and the lowest rating in the ladder
  - Decayed points are handed to active players, at most MAX_WEEKLY_BONUS each
"""

# Match rating update
K_FACTOR = 32
RATING_SPREAD = 400

# Starting rating for new players
STARTING_RATING = 1200

# Default parameters for inactivity decay
INACTIVITY_THRESHOLD_DAYS = 7
DECAY_POINTS_PER_PERIOD = 5
DECAY_PERIOD_DAYS = 7
ABSOLUTE_MINIMUM_RATING = 1000

# Cap on the per-player activity bonus handed out by one decay run
MAX_WEEKLY_BONUS = 5

# Prefixes used for system event identifiers in rating history
DECAY_EVENT_PREFIX = "DECAY"
ACTIVITY_BONUS_EVENT_PREFIX = "ACTIVITY_BONUS"
