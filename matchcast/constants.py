"""Shared constants."""

# Coordination
COOLDOWN_SECONDS = 60.0
DEBOUNCE_MS = 300
MATCH_LOOKUP_TIMEOUT = 30.0
LIGHT_LOOKUP_TIMEOUT = 10.0

# Feature windows
MIN_MATCHES = 5
FORM_WINDOW = 5
GOAL_WINDOW = 20
H2H_WINDOW = 10
LEAGUE_AVG_GOALS = 1.3
HOME_ADVANTAGE = 0.65
DEFAULT_GOALS_AVG = 1.2
NEUTRAL_FORM = 0.5
NEUTRAL_H2H = 0.5

# Strength ratio bounds
MIN_STRENGTH = 0.3
MAX_STRENGTH = 3.0

# Prediction bounds
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.95
INSUFFICIENT_DATA_CONFIDENCE = 0.1

# Ensemble blend
HOME_MODEL_WEIGHT = 0.6
AWAY_MODEL_WEIGHT = 0.4

# Realtime
REALTIME_MAX_RETRIES = 2
REALTIME_BASE_DELAY = 2.0
REALTIME_MAX_DELAY = 30.0
POLLING_INTERVAL = 45.0
MIN_POLLING_INTERVAL = 15.0
MAX_RECORDS = 100

# Market default odds when none are supplied
DEFAULT_MARKET_ODDS = {
    "1x2": 2.3,
    "ou25": 1.9,
    "btts": 1.8,
    "htft": 10.0,
}

HTFT_OUTCOMES = ["1/1", "1/X", "1/2", "X/1", "X/X", "X/2", "2/1", "2/X", "2/2"]
