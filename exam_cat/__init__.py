"""Exam CAT engine package."""
