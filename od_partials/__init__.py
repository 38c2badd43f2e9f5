"""
Observation Partials for Mutual Approximations
===============================================
Analytic observation partials (Jacobians) for orbit determination with
mutual-approximation observables of two bodies seen from one observer.

Architecture:
    - Parameter catalog with non-overlapping global column blocks
    - Link-end state partials (body states, ground-station positions)
    - Observable scalings: central instant, separation rate, impact parameter
    - Light-time correction partials composed over two propagation legs
    - Sparse per-link-end partial assembly and design-matrix rows
"""

__version__ = "0.1.0"
