"""Dashboard module: tab and view-mode driven listing fetches."""

from .tab_orchestrator import (
    DashboardTab,
    ViewMode,
    DashboardTabOrchestrator,
    ENDED_TAB_STATUSES,
    tab_predicates,
)

__all__ = [
    'DashboardTab',
    'ViewMode',
    'DashboardTabOrchestrator',
    'ENDED_TAB_STATUSES',
    'tab_predicates',
]
