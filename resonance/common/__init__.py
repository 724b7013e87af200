"""Common utilities shared by core and modules."""
