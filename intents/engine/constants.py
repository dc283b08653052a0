"""
Constants for intent classification and structural health detection.
All thresholds, weights and caps used by the engine. Every value here is a
default; AnalysisConfig lets callers override any of them per run.
"""

# =============================================================================
# LABELS
# =============================================================================

UNCLASSIFIED = 'unclassified'

TIER_HIGH = 'high'
TIER_DOUBTFUL = 'doubtful'
TIER_LOW = 'low'

TIERS = (TIER_HIGH, TIER_DOUBTFUL, TIER_LOW)

# URL variant axes
ISSUE_WWW = 'www'
ISSUE_TRAILING_SLASH = 'trailing-slash'
ISSUE_PROTOCOL = 'protocol'

# =============================================================================
# TOKENIZATION
# =============================================================================

# Tokens of this length or shorter never count as content words
MIN_WORD_LENGTH = 3

# Separators inside an intention's linguistic signal
SIGNAL_SEPARATORS = r'[,;]'

# =============================================================================
# STOPWORDS
# =============================================================================

# Most frequent corpus words excluded from example-overlap scoring
STOPWORD_TOP_N = 5

# =============================================================================
# CONFIDENCE SCORING
# =============================================================================

# Added once per linguistic signal token found in the phrase
SIGNAL_WEIGHT = 0.4

# Scales the example word-overlap ratio
EXAMPLE_WEIGHT = 0.6

# Tier boundaries
HIGH_CONFIDENCE = 0.5
DOUBTFUL_CONFIDENCE = 0.15

# Confidence given to a doubtful phrase confirmed by refinement
REFINED_CONFIDENCE = 0.4

# Doubtful phrases sent for refinement (largest impressions first)
REFINEMENT_MAX_PHRASES = 200

# Tentative intentions shown per doubtful phrase
REFINEMENT_CANDIDATES = 3

# =============================================================================
# SIMILARITY
# =============================================================================

SIMILARITY_THRESHOLD = 0.75

# =============================================================================
# QUICK WINS
# =============================================================================

QUICK_WIN_MIN_POSITION = 4
QUICK_WIN_MAX_POSITION = 20
QUICK_WIN_MIN_IMPRESSIONS = 100

# Final quick wins per intention
QUICK_WIN_LIMIT = 10

# Candidates shown to the curator per intention (highest impressions)
QUICK_WIN_PRESENTATION_LIMIT = 30

# =============================================================================
# CANNIBALIZATION / URL VARIANTS
# =============================================================================

# Only pages ranking inside this band compete
MIN_POSITION = 1
MAX_POSITION = 20

# Pages below this share (percent of phrase impressions) are noise
MIN_IMPRESSION_SHARE = 5.0

# Adaptive filter: many URLs OR a material slice of total impressions
CANNIBALIZATION_MIN_URLS = 3
CANNIBALIZATION_MIN_TRAFFIC_SHARE = 0.01

# Hard cap on reported groups
MAX_GROUPS = 20

# =============================================================================
# EXTERNAL SEAMS
# =============================================================================

# Seconds to wait for a refinement/curation collaborator
SEAM_TIMEOUT = 180.0
