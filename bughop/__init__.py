"""
Bughop: a puzzle game played inside a tiny virtual machine.

The player steers the debugger across a grid of instructions; every cell
it enters is executed, and reaching END finishes the level.
"""

__version__ = "0.1.0"
