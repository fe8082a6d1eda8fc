"""HR module — centralized HR action service, domain events and external interfaces."""
