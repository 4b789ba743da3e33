"""Physical board: layouts, sensor state, settings and logging."""
