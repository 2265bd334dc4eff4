"""Terminal driver for the assessment engine."""
