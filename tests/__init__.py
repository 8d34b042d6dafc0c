"""
Guildhall Test Suite
====================

Test Organization
-----------------
- tests/unit/          : Fast unit tests with mocks (no database)
- tests/integration/   : Guild workflows against a real database engine

Run against PostgreSQL instead of SQLite with GUILDHALL_TEST_POSTGRES=1
(requires Docker for testcontainers).
"""
