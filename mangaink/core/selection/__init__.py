"""
Element selection and direct manipulation.
"""
from .manipulation import InteractionState, ManipulationController, compute_snap

__all__ = [
    'InteractionState',
    'ManipulationController',
    'compute_snap',
]
