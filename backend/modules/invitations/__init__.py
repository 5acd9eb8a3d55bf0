# backend/modules/invitations/__init__.py

"""
SMS invitations and diner registration.
"""
