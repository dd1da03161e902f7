"""Per-base sequencing error metrics, stratified by read-base context."""

__version__ = "0.1.0"
