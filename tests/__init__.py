"""
Helper Bot Tests

Unit tests live in tests/unit and mock every network collaborator
(Anthropic, the platform API, RabbitMQ).

Running Tests:
    # Run all tests
    pytest tests -v

    # Run one module
    pytest tests/unit/test_orchestrator.py -v

Test Coverage:
    - Intent catalog invariants
    - Classification parsing, normalization and auth retry
    - Dialog state store degradation and message tagging
    - Context merging
    - Orchestrator transitions, question budget and write failures
    - Reply composition
    - Update routing and queue settlement
    - Platform HTTP client
    - Health probes
"""
