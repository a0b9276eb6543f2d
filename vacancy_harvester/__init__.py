"""vacancy-harvester: date-ranged vacancy ingestion into MongoDB."""

__version__ = "0.1.0"
