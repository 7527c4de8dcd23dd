"""Shared utilities for the lead discovery pipeline."""
