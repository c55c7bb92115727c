"""
Autosave and server reconciliation.
"""
from .autosave import AutosavePipeline, SaveStatus
from .reconcile import reconcile_pages
from .scheduler import QtScheduler, Scheduler

__all__ = [
    'AutosavePipeline',
    'SaveStatus',
    'reconcile_pages',
    'QtScheduler',
    'Scheduler',
]
