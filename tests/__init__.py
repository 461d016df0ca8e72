"""
Tests for the tile retriever, grid stitcher and CLI host.
"""
