"""Project lineage graph, layout and merge engine."""

__version__ = "0.1.0"
