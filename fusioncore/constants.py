"""Constants for the fusion pipeline.

Numeric anchors, thresholds and limits shared across modules. Values are
kept here so the scoring rules can be audited in one place.
"""

# Earth model
EARTH_RADIUS_M = 6371e3
KM_PER_DEGREE_LAT = 110.574
KM_PER_DEGREE_LNG_EQUATOR = 111.320

# Confidence anchors
CONFIDENCE_ANCHORS = {
    "high": 0.9,
    "medium": 0.6,
    "low": 0.3,
    "fallback": 0.1,
}
DEFAULT_CONFIDENCE_LABEL = "medium"
DEFAULT_CORRELATION_SCORE = 0.5

# Combination bands
STRONG_CORRELATION = 0.8
PARTIAL_CORRELATION = 0.5
STRONG_CORRELATION_CAP = 0.95
DUAL_HIGH_SOURCE_THRESHOLD = 0.8
DUAL_HIGH_SOURCE_BOOST = 0.05
DUAL_HIGH_SOURCE_CAP = 0.98

# Label thresholds for a combined value
HIGH_CONFIDENCE_THRESHOLD = 0.85
MEDIUM_CONFIDENCE_THRESHOLD = 0.5

# Label thresholds for a correlation score
SCORE_HIGH_THRESHOLD = 0.8
SCORE_MEDIUM_THRESHOLD = 0.6

# Reliability assessment
RELIABILITY_BASELINE = 0.5
RELIABILITY_MULTI_SOURCE_BOOST = 0.25
RELIABILITY_CORRELATION_BOOST = 0.15
RELIABILITY_CORRELATION_THRESHOLD = 0.8
RELIABILITY_CONFIDENCE_ADJUSTMENT = 0.1
RELIABILITY_HIGH_THRESHOLD = 0.8
RELIABILITY_MEDIUM_THRESHOLD = 0.5

# Product confidence
MULTI_SOURCE_HIGH_RATIO = 0.5
MULTI_SOURCE_MEDIUM_RATIO = 0.25
MULTI_SOURCE_VOTE_BOOST = 2

# Correlation factors
STRONG_DIMENSION_SCORE = 0.7
MODERATE_OVERALL_SCORE = 0.5
NOT_CALCULATED_REASON = "Not calculated"

# Spatial correlation bands: (upper bound in metres, score, reason)
RADAR_DISTANCE_BANDS = [
    (500, 0.95, "Extremely close proximity for radar system"),
    (2000, 0.85, "Very close proximity for radar system"),
    (5000, 0.7, "Close proximity for radar system"),
    (10000, 0.5, "Moderate proximity for radar system"),
    (20000, 0.3, "Possible proximity for radar system"),
]
RADAR_DISTANT = (0.1, "Distant locations, unlikely to be the same radar system")

STANDARD_DISTANCE_BANDS = [
    (200, 0.95, "Extremely close proximity"),
    (1000, 0.85, "Very close proximity"),
    (3000, 0.7, "Close proximity"),
    (5000, 0.5, "Moderate proximity"),
    (10000, 0.3, "Significant distance"),
]
STANDARD_DISTANT = (0.1, "Distant locations, unlikely to be the same entity")

# Fusion
SIGINT_LOCATION_PREFERENCE = 0.8
HUMINT_LOCATION_WEIGHT = 0.4
SIGINT_LOCATION_WEIGHT = 0.6

# JSON extraction
DEFAULT_MAX_SALVAGE_ATTEMPTS = 2000
DEFAULT_SALVAGE_TIME_BUDGET = 2.0
DEFAULT_PREVIEW_CHARS = 200

# Export
ENEMY_FORCES_TYPE = "military_unit"
TERRAIN_TYPE = "location"
