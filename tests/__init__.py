"""
Test suite for the EPW decoder service.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_epw_decoder.py -v
"""
