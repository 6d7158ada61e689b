"""HTTP surface and presentation helpers for analysis results."""
