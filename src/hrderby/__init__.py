"""Home-run pool stats ingestion and leaderboard pipeline."""

__version__ = "0.1.0"
