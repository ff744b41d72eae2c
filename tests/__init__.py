"""Action Engine Test Suite

Test organization:
- unit/: Unit tests for individual modules
  - signals/: scheduler, activity collector, event history
  - nudges/: classifier rules, nudge board and micro-flows
  - flow/: focus lock, Flow runner, debrief
  - clients/: HTTP clients (httpx.MockTransport), static plans, circuit breaker
- integration/: whole-engine Flow sessions

Running tests:
    # All tests
    pytest

    # Specific area
    pytest tests/unit/flow/

    # Skip the end-to-end sessions
    pytest -m "not integration"
"""
