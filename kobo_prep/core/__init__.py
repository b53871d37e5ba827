"""Settings and rule set registry."""
