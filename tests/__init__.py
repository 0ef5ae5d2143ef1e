"""Test suite for the force-directed layout engine.

This package contains:
- Unit tests for kernel handles, the buffer registry and partitions
- Tick state-machine tests (ordering, locks, failure recovery)
- A Triton smoke test that runs only on CUDA machines
"""
