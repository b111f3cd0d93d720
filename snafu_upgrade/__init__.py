# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Upgrade SNAFU context selectors by following compiler diagnostics."""

__version__ = "0.1.0"
