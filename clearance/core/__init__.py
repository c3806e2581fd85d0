"""Clearance workflow core: offices, access policy and the workflow engine."""
