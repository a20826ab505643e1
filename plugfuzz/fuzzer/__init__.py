"""Blind mutation fuzzing engine.

Implements:
  - Plugin-driven execution across a pool of worker threads
  - Bit-flip mutation of a seed sample
  - Bounded-wait target execution with hang detection
  - Artifact retention for failing samples only
"""
