"""
External integrations for the EduKid assessment engine.

Modules:
- backend_client: shared httpx plumbing (auth, retries, error mapping)
- content_client: quiz and puzzle generation/fetching
- scoring_client: remote grading of submissions
- schemas: backend wire models
"""
