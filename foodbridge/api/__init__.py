"""FastAPI application for FoodBridge."""
