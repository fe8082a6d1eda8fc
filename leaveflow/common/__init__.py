"""Common module — shared enums, exceptions, audit trail, pagination and locks."""
