"""leaveflow — multi-tenant leave ledger and HR action workflow engine."""

__version__ = "1.0.0"
