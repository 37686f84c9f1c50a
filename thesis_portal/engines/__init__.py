"""Decision and accounting engines."""
