"""
Constants for PneumaFlow CPAP data storage and querying.

Thresholds follow the values used for nightly therapy summaries; storage and
query limits bound memory use on the ingest side and payload size on the
read side.
"""

from pathlib import Path

# ============================================================================
# Sampling
# ============================================================================

# Default device sampling rate (Hz), used when it cannot be derived from data
DEFAULT_SAMPLE_RATE_HZ = 25.0

SAMPLE_RATE_AUTO = "auto"

SECONDS_PER_MINUTE = 60
MINUTES_PER_HOUR = 60
MILLISECONDS_PER_SECOND = 1000

# ============================================================================
# Ingestion
# ============================================================================

# Samples buffered before a part-file is written (~33 minutes at 25 Hz)
DEFAULT_BATCH_SIZE = 50_000

# Recognized CSV header columns
COLUMN_TIMESTAMP = "timestamp"
COLUMN_FLOW_RATE = "flow_rate"
COLUMN_LEAK_RATE = "leak_rate"
COLUMN_PRESSURE = "pressure"
COLUMN_FLOW_LIMITATION = "flow_limitation"
COLUMN_MASK_ON = "mask_on"
COLUMN_EVENT_TYPE = "event_type"
COLUMN_EVENT_DURATION = "event_duration"
COLUMN_EVENT_SEVERITY = "event_severity"

NUMERIC_COLUMNS = (
    COLUMN_FLOW_RATE,
    COLUMN_LEAK_RATE,
    COLUMN_PRESSURE,
    COLUMN_FLOW_LIMITATION,
    COLUMN_MASK_ON,
    COLUMN_EVENT_DURATION,
    COLUMN_EVENT_SEVERITY,
)

CSV_DELIMITER = ","

# ============================================================================
# Clinical Thresholds
# ============================================================================

# Leak thresholds (L/min)
LEAK_LARGE_THRESHOLD = 24  # Samples above this count as large leak


class QualityScoreConstants:
    """
    Deductions for the nightly quality score (aggregation/computer.py).

    Each deduction is linear in how far the metric is past its threshold and
    capped at its maximum. The final score is clamped to [0, 100].
    """

    MAX_SCORE = 100
    MIN_SCORE = 0

    AHI_MILD_THRESHOLD = 5.0
    AHI_MILD_RATE = 2.0
    AHI_MILD_MAX_DEDUCTION = 30.0

    AHI_SEVERE_THRESHOLD = 15.0
    AHI_SEVERE_RATE = 1.0
    AHI_SEVERE_MAX_DEDUCTION = 20.0

    LARGE_LEAK_PERCENT_THRESHOLD = 10.0
    LARGE_LEAK_RATE = 1.0
    LARGE_LEAK_MAX_DEDUCTION = 20.0

    MASK_ON_PERCENT_TARGET = 80.0
    MASK_ON_RATE = 1.0
    MASK_ON_MAX_DEDUCTION = 30.0


PERCENTILE_95 = 0.95

# ============================================================================
# Event Categories
# ============================================================================

EVENT_CATEGORY_APNEA = "apnea"
EVENT_CATEGORY_HYPOPNEA = "hypopnea"
EVENT_CATEGORY_OTHER = "other"

# ============================================================================
# Query Limits
# ============================================================================

MESO_MIN_BUCKET_SECONDS = 1
MESO_MAX_BUCKET_SECONDS = 300
MESO_DEFAULT_BUCKET_SECONDS = 60

MICRO_MAX_POINTS = 10_000
MICRO_MIN_POINTS = 3
MICRO_DEFAULT_POINTS = 2_000

# ============================================================================
# Columnar Storage
# ============================================================================

PARQUET_COMPRESSION = "zstd"
PART_FILE_PREFIX = "part-"
PART_FILE_SUFFIX = ".parquet"
MANIFEST_FILE = "_manifest.json"

# Rows per Parquet row group; row-group statistics drive range pruning
PARQUET_ROW_GROUP_SIZE = 10_000

# ============================================================================
# Default Paths
# ============================================================================

DEFAULT_HOME_DIR = Path.home() / ".pneumaflow"
DEFAULT_DATA_DIR = DEFAULT_HOME_DIR / "parquet"
DEFAULT_DATABASE_PATH = str(DEFAULT_HOME_DIR / "pneumaflow.db")
DEFAULT_CONFIG_FILE = DEFAULT_HOME_DIR / "config.toml"

# Logging configuration
DEFAULT_LOG_DIR = DEFAULT_HOME_DIR / "logs"
DEFAULT_LOG_FILE = "pneumaflow.log"
DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_LOG_BACKUP_COUNT = 5
