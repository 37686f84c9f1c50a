"""Workflow services: submissions, registration, supervision, groups, notifications."""
