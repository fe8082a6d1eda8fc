"""Attendance module — leave-driven attendance records and HR overrides."""
