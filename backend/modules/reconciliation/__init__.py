# backend/modules/reconciliation/__init__.py

"""
POS bill export reconciliation.
"""
