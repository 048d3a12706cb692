"""learndown telemetry core.

Bootstraps course database credentials from an encrypted configuration blob
and relays the interaction events of learndown course applications to a
MongoDB database.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
