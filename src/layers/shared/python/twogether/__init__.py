"""Shared layer for the TwogetherForward email pipeline."""
