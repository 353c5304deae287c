"""Celery workers and tasks.

Task modules are imported by krafts.core.celery so beat schedules resolve.
"""
