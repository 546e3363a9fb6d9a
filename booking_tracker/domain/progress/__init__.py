"""Progress domain - Weighted aggregation from tasks up to bookings"""
