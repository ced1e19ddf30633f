"""Meetwatch Test Suite

Test organization:
- unit/: Unit tests for individual modules
  - slots/: Slot engine, timezone parsing, candidate availability
  - pipeline/: Processed set, controller, polling monitor, reply text
  - oracle/: Oracle response parsing and the Claude client
  - providers/: Gmail, Google Calendar and OAuth credential providers
- integration/: Controller driven through several polls with in-memory collaborators

Running tests:
    # All tests
    pytest

    # Specific module
    pytest tests/unit/slots/
"""
