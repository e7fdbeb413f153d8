"""
Pytest suite for the storefront order service.

Test categories:
- Unit tests: Service layer against an in-memory SQLite database
- API tests: Full FastAPI app through httpx with the DB dependency overridden
- Integration tests: ORM models and database constraints
"""
