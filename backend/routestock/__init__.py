"""Route stock assignment, warehouse reconciliation and sales reporting backend."""

__version__ = "0.1.0"
