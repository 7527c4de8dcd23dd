#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Lead Discovery

Scheduled, multi-source discovery of construction and hospitality project
leads: source aggregation, anti-bot request handling, field extraction,
confidence scoring and pollable job progress.
"""

__version__ = "0.3.0"
