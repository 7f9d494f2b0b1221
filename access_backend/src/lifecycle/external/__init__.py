"""External service integrations (Stripe, Axie Studio)."""
