"""FoodBridge: surplus food donation matching and delivery tracking."""

__version__ = "1.0.0"
