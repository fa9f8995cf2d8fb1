"""Match outcome prediction engine."""

__all__ = [
    "cli",
    "config",
    "constants",
    "exceptions",
    "schema",
    "normalization",
    "features",
    "models",
    "worker",
    "storage",
    "coordination",
    "realtime",
    "ingestion",
    "ops",
]

__version__ = "0.1.0"
