# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain layer.

Domains:
    auth: Bearer token verification.
    gradebook: Gradebook aggregate, aggregation engine and service.
"""
