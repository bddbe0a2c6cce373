"""
Test suite for the production summary service.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_summary_store.py -v
"""
