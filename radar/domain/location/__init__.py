"""Location acquisition, significance filtering and permission tracking."""
