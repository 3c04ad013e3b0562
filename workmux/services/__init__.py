"""Services used by the workmux workflows."""
