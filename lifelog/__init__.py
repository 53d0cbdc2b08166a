"""Personal activity analytics: top-N rankings, timelines and heatmaps."""

__version__ = "0.1.0"
