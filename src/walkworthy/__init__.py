"""WalkWorthy scan pipeline: workload in, vetted verse and encouragement out."""

__version__ = "0.1.0"
