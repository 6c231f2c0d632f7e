# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Hifz analytics: batch metrics and alerting for memorization programs."""

__version__ = "0.1.0"
