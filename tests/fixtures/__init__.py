"""
Pytest fixtures for the HookedHTTP test suite.

- http_mocking: scripted MockTransport backends and the client factory fixture
"""
