"""Batch Attendance package.

Organized by feature modules (batches, attendance, daily_updates, ...) with a
thin Flask controller layer over service/repository layers.
"""
