"""Tenancy module — workspaces, memberships and per-workspace role resolution."""
