"""Services around the workflow graph: persistence, lifecycle and action execution."""
