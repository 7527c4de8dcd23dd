#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Browser identity - realistic user agents and request headers.
"""

import random
from typing import Dict, Optional

USER_AGENTS = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/118.0.0.0 Safari/537.36",
    # Chrome on macOS
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    # Firefox
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
    # Safari
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 Safari/605.1.15",
    # Edge
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
    # Chrome on Linux
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    # Mobile
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Linux; Android 14; SM-S918B) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36",
]

ACCEPT_LANGUAGES = [
    "en-US,en;q=0.9",
    "en-US,en;q=0.9,es;q=0.8",
    "en-US,en;q=0.9,fr;q=0.8,de;q=0.7",
    "en-GB,en;q=0.9,en-US;q=0.8",
    "en-CA,en;q=0.9,en-US;q=0.8,fr-CA;q=0.7",
]

DEFAULT_REFERER = "https://www.google.com/"


def get_random_user_agent(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(USER_AGENTS)


def platform_for(user_agent: str) -> str:
    """Sec-Ch-Ua-Platform value matching a user agent string."""
    if "Android" in user_agent:
        return '"Android"'
    if "iPhone" in user_agent or "iPad" in user_agent:
        return '"iOS"'
    if "Windows" in user_agent:
        return '"Windows"'
    if "Macintosh" in user_agent:
        return '"macOS"'
    return '"Linux"'


def is_mobile(user_agent: str) -> bool:
    return "Mobile" in user_agent


def build_headers(
    user_agent: Optional[str] = None,
    referer: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, str]:
    """
    Build a randomised but self-consistent set of browser headers.

    Args:
        user_agent: User agent to use, picked at random when omitted
        referer: Referer header, defaults to a search engine landing page
        rng: Random source, the module-level one when omitted

    Returns:
        Dict[str, str]: Request headers
    """
    rng = rng or random
    user_agent = user_agent or get_random_user_agent(rng)

    headers = {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "Accept-Language": rng.choice(ACCEPT_LANGUAGES),
        "Accept-Encoding": "gzip, deflate, br",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "cross-site",
        "Sec-Fetch-User": "?1",
        "Sec-Ch-Ua-Mobile": "?1" if is_mobile(user_agent) else "?0",
        "Sec-Ch-Ua-Platform": platform_for(user_agent),
        "Referer": referer or DEFAULT_REFERER,
    }

    if rng.random() > 0.5:
        headers["DNT"] = "1"

    return headers
