"""EduKid assessment engine."""
