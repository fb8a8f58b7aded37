"""Connection supervision, readiness polling and the main listen loop."""
