"""threadStocks — personal thread inventory backend.

Accounts (register, login, password reset) and a per-user collection
of thread records, served as a JSON API. Every thread belongs to
exactly one user and only that user can see or change it.
"""

__version__ = "0.1.0"
