"""Kernel – error hierarchy and functional result types."""
