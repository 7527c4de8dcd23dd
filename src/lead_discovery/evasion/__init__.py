#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Evasion Package

Throttling, session pooling, header randomisation, proxy rotation and
retries for outbound requests.
"""

from .layer import EvasionLayer
from .proxies import ProxyPool, ProxyRecord
from .retry import RetryPolicy
from .sessions import SessionPool

__all__ = ["EvasionLayer", "ProxyPool", "ProxyRecord", "RetryPolicy", "SessionPool"]
