"""Menu catalog and promotions."""
