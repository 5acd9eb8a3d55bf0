# backend/modules/loyalty/__init__.py

"""
Points, visits and voucher rewards.
"""
