"""
Services module for iVisit Emergency Backend.

Contains the emergency request lifecycle and its supporting stores.
"""
