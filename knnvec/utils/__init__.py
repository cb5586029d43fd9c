"""Shared utilities for knnvec."""
