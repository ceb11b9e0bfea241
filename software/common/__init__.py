#!/usr/bin/env python3
"""Shared protocol, data models, geodesy and connection base for SKYSHIELD."""
