"""Organization-wide GitHub activity metrics."""
