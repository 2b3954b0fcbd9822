"""
POS Orders Store — Django Persistence
=======================================
Django ORM implementation of the order repository.
"""
