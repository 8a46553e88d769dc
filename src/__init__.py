"""School Gradebook Backend.

Gradebook service tracking terms, lessons, attendance and per-student
evaluations for regular and kindergarten classrooms.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
