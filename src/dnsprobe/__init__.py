"""
dnsprobe - DNS Resolution and Propagation Utilities

A toolkit for checking how a DNS record resolves across public
resolvers, providing a wire-format DNS codec, UDP and DNS-over-HTTPS
transports, and propagation reporting.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

__version__ = "0.1.0"
__author__ = "DNS Science.io"
__copyright__ = "Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company"
