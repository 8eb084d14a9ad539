"""
Domain layer package housing the backend-agnostic object store contract.
"""
