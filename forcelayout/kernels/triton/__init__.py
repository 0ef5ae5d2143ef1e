"""CUDA/Triton relaxation routines (imported only when the Triton backend is selected)."""
