"""plugfuzz — pluggable mutation-fuzzing harness.

Discovers fuzzer modules from a directory, lets the operator pick one by
name and drives it through mutate-execute-classify cycles on a pool of
worker threads.
"""

__version__ = "1.0.0"
