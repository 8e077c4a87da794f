"""
Learning System Services

Services for the FSRS-based spaced repetition system.

Modules:
- fsrs: FSRS algorithm wrapper with learning steps
- scheduling_service: Review recording (ledger + card state cache)
- card_state_service: Cache initialization, rebuild and weight fitting
- optimizer: Per-student FSRS weight fitting
- session_service: Teaching session orchestration
- student_progress_service: Due cards and listening suggestions for dashboards

Usage:
    from app.services.learning import (
        SchedulingService,
        CardStateService,
        create_scheduler,
    )
    from app.services.learning.session_service import SessionService

session_service is imported from its module: it depends on the exercise
handlers, which in turn depend on the services exported here.
"""

from app.services.learning.fsrs import (
    CardSnapshot,
    FSRSScheduler,
    create_scheduler,
    fold_reviews,
)
from app.services.learning.optimizer import OptimizationResult, ParameterOptimizer
from app.services.learning.scheduling_service import SchedulingService
from app.services.learning.card_state_service import CardStateService

__all__ = [
    # FSRS
    "CardSnapshot",
    "FSRSScheduler",
    "create_scheduler",
    "fold_reviews",
    # Optimizer
    "OptimizationResult",
    "ParameterOptimizer",
    # Services
    "SchedulingService",
    "CardStateService",
]
