"""
Concrete agents built on the shared orchestration core.
"""
