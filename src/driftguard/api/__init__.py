"""REST API for evaluating objects in audit mode."""
