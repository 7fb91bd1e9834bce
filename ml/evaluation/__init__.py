"""
Offline evaluation utilities for heating-time engines.
"""

from .replay import (
    ReplayConfig,
    ReplayResult,
    compare_engines,
    replay_engine,
)

__all__ = [
    'ReplayConfig',
    'ReplayResult',
    'compare_engines',
    'replay_engine',
]
