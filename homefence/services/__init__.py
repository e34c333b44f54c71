"""Domain services for Homefence."""
