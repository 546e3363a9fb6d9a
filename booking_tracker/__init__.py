"""Booking tracker backend - progress, status and dashboard summaries"""
