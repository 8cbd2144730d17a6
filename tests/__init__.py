"""
Test Suite for the Discovery Harness

Test Structure:
- unit/: harness building blocks, no Docker required
- integration/: proxy scenarios against the orchestrated environment

Running Tests:
    pytest                      # Run all tests
    pytest tests/unit           # Unit tests only
    pytest -m integration       # Integration scenarios (needs Docker + proxy binary)
"""
