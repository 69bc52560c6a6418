"""Orders, order lines, and the pricing engine."""
