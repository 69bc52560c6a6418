"""Restaurant point-of-sale order pricing for Django."""
