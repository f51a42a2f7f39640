"""Time-bucketed partitioning of the archive sample table."""
