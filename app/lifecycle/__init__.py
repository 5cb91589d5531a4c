"""
Lifecycle state machine, folder cascade and the transition service.
"""

from .cascade import (
    CascadePropagator,
    CascadeReport,
    iter_ancestors,
    iter_descendants,
    validate_move,
)
from .service import LifecycleService

__all__ = [
    'CascadePropagator',
    'CascadeReport',
    'LifecycleService',
    'iter_ancestors',
    'iter_descendants',
    'validate_move',
]
