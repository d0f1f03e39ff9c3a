"""Page export workflows."""
