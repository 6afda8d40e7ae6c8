# config.py

"""Configuration settings for the pool VM balancer."""

# Plan modes
PERFORMANCE_MODE = "performance"
DENSITY_MODE = "density"

# Delay between each resources evaluation in minutes.
# Must be less than MINUTES_OF_HISTORICAL_DATA.
EXECUTION_DELAY = 1
MINUTES_OF_HISTORICAL_DATA = 30

STATS_GRANULARITY = "minutes"
GRANULARITY_SECONDS = {
    "minutes": 60,
}

# Weight of the immediate average against the trailing one
IMMEDIATE_AVERAGE_RATIO = 0.75

# CPU threshold in percent
DEFAULT_CRITICAL_THRESHOLD_CPU = 90.0

# Free memory threshold in bytes (64 MiB)
DEFAULT_CRITICAL_THRESHOLD_MEMORY_FREE = 64.0 * 1024 * 1024

# Thresholds factors
HIGH_THRESHOLD_FACTOR = 0.85
LOW_THRESHOLD_FACTOR = 0.25

HIGH_THRESHOLD_MEMORY_FREE_FACTOR = 1.25
LOW_THRESHOLD_MEMORY_FREE_FACTOR = 20.0

# Averages an entity needs before it takes part in a cycle
HOST_REQUIRED_AVERAGES = ("cpu", "memory_free")
VM_REQUIRED_AVERAGES = ("cpu", "memory")

# Metric service lookups: stats field -> (metric name, multiplier)
# Multipliers convert memory metrics to bytes.
HOST_METRICS = {
    "cpus": ("compute.node.cpu.percent", 1.0),
    "memory": ("hardware.memory.used", 1024.0),
    "memory_free": ("hardware.memory.avail", 1024.0),
}
VM_METRICS = {
    "cpus": ("cpu_util", 1.0),
    "memory": ("memory.usage", 1024.0 * 1024.0),
    "memory_free": (None, 1.0),
}

# Live migrations
MAX_CONCURRENT_MIGRATIONS = 2
MIGRATION_TIMEOUT = 600  # seconds
MIGRATION_POLL_INTERVAL = 5  # seconds

# Required OpenStack environment variables
REQUIRED_ENV_VARS = [
    'OS_AUTH_URL',
    'OS_PROJECT_NAME',
    'OS_USERNAME',
    'OS_PASSWORD'
]

# Logging format
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
