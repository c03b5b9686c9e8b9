"""
Duty Roster Scheduling System

Assigns shifts to employees across a calendar, supports peer-to-peer shift
swaps, generates schedules from repeating patterns, and synchronizes
month partitions of the schedule to a shared document store.
"""

__version__ = "1.0.0"
__author__ = "Duty Roster Team"
