# backend/modules/restaurants/__init__.py

"""
Restaurant settings, branches, staff and dashboard stats.
"""
