"""
Access & Lifecycle Module

Decides who may use the workspace product and keeps the trial record, the
Stripe billing mirror and the workspace account consistent:
- access: access-level resolution
- external: Stripe and Axie Studio integrations, webhook synchronization
- workspace: access-gated workspace account bridge
- deletion: multi-system account deletion
- trials: signup provisioning, trial start and the expiry sweep
- subscriptions: cancel / reactivate self-service
- endpoints: FastAPI routers
"""
