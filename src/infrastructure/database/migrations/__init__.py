# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database migrations package.

Migrations are alembic-style modules under ``versions/`` applied in order by
``runner.run_migrations``.
"""
