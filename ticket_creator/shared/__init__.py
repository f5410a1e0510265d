"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded
contexts (Directory and Intake).

Architecture Pattern: Modular Monolith
- Each module (directory, intake) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add business logic from Directory or Intake to shared kernel.
"""

__version__ = "1.4.0"
