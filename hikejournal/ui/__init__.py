"""Terminal rendering for the hike journal."""
