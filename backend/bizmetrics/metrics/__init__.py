"""KPI aggregation, retention and ranking."""
