"""
Clinic Scheduler Tests

Running Tests:
    # Install with test extras
    pip install -e ".[test]"

    # Run all tests
    pytest -v

    # Run one module
    pytest tests/unit/test_scheduling_engine.py -v

Test Coverage:
    - Slot generation and the half-open conflict rule
    - Scheduling engine: validation, authorization, conflicts, concurrency
    - Tool dispatcher: patient injection and error normalization
    - Conversation loop: tool rounds, ordering, round cap, persistence
    - Conversation store: Redis and in-memory fallback
    - REST API status codes end to end
"""
