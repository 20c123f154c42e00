# lcs_request/core/client_info.py
"""
Client metadata extracted from request headers.
"""

from typing import Dict
import ipaddress

from lcs_request.models.request_context import RequestContext

# Checked in order, first non-empty wins
CLIENT_IP_HEADERS = (
    "client-ip",
    "x-forwarded-for",
    "x-forwarded",
    "x-cluster-client-ip",
    "forwarded-for",
    "forwarded",
)


def get_client_ip_address(context: RequestContext) -> str:
    """
    Best guess at the client's IP address.

    Proxy headers take precedence over the socket address. A comma separated
    chain yields its first entry. Anything that does not parse as an IP
    address comes back as "INVALID IP".
    """
    address = ""
    for name in CLIENT_IP_HEADERS:
        value = context.header(name)
        if value:
            address = value
            break
    else:
        address = context.client_host or "UNKNOWN"

    if "," in address:
        address = address.split(",")[0]
    address = address.strip()

    try:
        ipaddress.ip_address(address)
    except ValueError:
        return "INVALID IP"
    return address


def get_user_agent(context: RequestContext) -> Dict[str, str]:
    """Rough browser / platform / device classification of the User-Agent"""
    user_agent = (context.header("user-agent") or "").strip() or "UNKNOWN"

    if "MSIE" in user_agent or "Trident/" in user_agent:
        browser = "Internet Explorer"
    elif "Edge" in user_agent:
        browser = "Microsoft Edge"
    elif "Firefox" in user_agent:
        browser = "Mozilla Firefox"
    elif "Chrome" in user_agent:
        browser = "Google Chrome"
    elif "Safari" in user_agent:
        browser = "Apple Safari"
    elif "Opera" in user_agent or "OPR" in user_agent:
        browser = "Opera"
    else:
        browser = "Unknown Browser"

    if "Windows" in user_agent:
        platform = "Windows"
    elif "Macintosh" in user_agent or "Mac OS X" in user_agent:
        platform = "Mac OS"
    elif "Linux" in user_agent:
        platform = "Linux"
    elif "Android" in user_agent:
        platform = "Android"
    elif "iPhone" in user_agent or "iPad" in user_agent:
        platform = "iOS"
    else:
        platform = "Unknown Platform"

    if "Mobi" in user_agent:
        device_type = "Mobile"
    elif "Tablet" in user_agent or "iPad" in user_agent:
        device_type = "Tablet"
    else:
        device_type = "Desktop"

    return {
        "user_agent": user_agent,
        "browser": browser,
        "platform": platform,
        "device_type": device_type,
    }
