"""PacBio read correction pipeline.

A resumable driver that partitions the correction workload, runs the external
assembler and consensus tools locally or on a batch grid, and merges the
per-partition results.
"""

__version__ = "0.1.0"
