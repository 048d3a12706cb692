# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for learndown.

This package contains configuration and security primitives:
- config: Settings and the encrypted configuration bootstrapper
- security: Password-based encryption of configuration blobs
"""
