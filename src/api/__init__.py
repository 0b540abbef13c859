"""HTTP layer - FastAPI application, models and routes."""
