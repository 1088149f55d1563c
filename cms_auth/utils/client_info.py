"""Client metadata captured with login attempts."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ClientInfo:
    """Caller context recorded on each login log entry."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    operating_system: Optional[str] = None

    @classmethod
    def from_request(cls, request) -> "ClientInfo":
        """Build client info from a Starlette request."""
        # First hop of X-Forwarded-For when running behind a proxy
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            ip_address = forwarded.split(",")[0].strip()
        elif request.client:
            ip_address = request.client.host
        else:
            ip_address = None

        return cls.from_user_agent(request.headers.get("User-Agent"), ip_address)

    @classmethod
    def from_user_agent(cls, user_agent: Optional[str], ip_address: Optional[str] = None) -> "ClientInfo":
        if user_agent:
            user_agent = user_agent[:500]
        return cls(
            ip_address=ip_address[:45] if ip_address else None,
            user_agent=user_agent,
            device_type=parse_device_type(user_agent),
            browser=parse_browser(user_agent),
            operating_system=parse_operating_system(user_agent),
        )


def parse_device_type(user_agent: Optional[str]) -> Optional[str]:
    if not user_agent:
        return None
    ua = user_agent.lower()
    if "ipad" in ua or "tablet" in ua:
        return "Tablet"
    if "mobile" in ua or "iphone" in ua or "android" in ua:
        return "Mobile"
    if "bot" in ua or "spider" in ua or "crawl" in ua:
        return "Bot"
    return "Desktop"


def parse_browser(user_agent: Optional[str]) -> Optional[str]:
    if not user_agent:
        return None
    # Order matters: Edge and Opera also advertise Chrome, Chrome advertises Safari
    markers = [
        ("Edg/", "Edge"),
        ("OPR/", "Opera"),
        ("Firefox/", "Firefox"),
        ("Chrome/", "Chrome"),
        ("Safari/", "Safari"),
        ("curl/", "curl"),
    ]
    for marker, name in markers:
        if marker in user_agent:
            return name
    return "Other"


def parse_operating_system(user_agent: Optional[str]) -> Optional[str]:
    if not user_agent:
        return None
    markers = [
        ("Windows", "Windows"),
        ("Android", "Android"),
        ("iPhone", "iOS"),
        ("iPad", "iOS"),
        ("Mac OS X", "macOS"),
        ("Linux", "Linux"),
    ]
    for marker, name in markers:
        if marker in user_agent:
            return name
    return "Other"
