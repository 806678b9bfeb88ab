"""Payment gateway callbacks."""
