#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Extraction Package

Text heuristics that turn article titles and snippets into lead fields.
"""

from .extractor import extract_all, generate_description

__all__ = ["extract_all", "generate_description"]
