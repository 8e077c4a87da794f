"""
Tutor Engine Test Suite

Test Structure:
    tests/
    ├── conftest.py          # Shared fixtures (per-test SQLite file, seed data)
    ├── unit/                # Unit tests (isolated, no external services)
    │   ├── test_fsrs.py             # Review transitions and learning steps
    │   ├── test_scheduling_service.py
    │   ├── test_card_state_service.py
    │   ├── test_exercise_handlers.py
    │   ├── test_session_service.py
    │   ├── test_student_progress_service.py  # Due cards, listening suggestion
    │   ├── test_job_worker.py
    │   └── test_api.py              # HTTP surface via httpx ASGITransport
    └── integration/         # Integration tests (require PostgreSQL)
        ├── test_job_claim.py        # Concurrent SKIP LOCKED claiming
        └── test_card_state_locking.py  # Reviews racing rebuilds, concurrent fits

Running Tests:
    # Run unit tests (the default; integration tests are deselected)
    pytest

    # Run only integration tests (requires a PostgreSQL test database)
    pytest -m integration
"""
