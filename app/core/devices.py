"""
Device classification from the User-Agent header.

Stored on each click as one of: desktop, mobile, tablet, bot, unknown.
Tablets are checked before mobiles (an iPad UA also parses as touch-capable).
"""

from user_agents import parse as parse_ua

from app.core.entities import DeviceType


def classify_device(user_agent: str | None) -> DeviceType:
    if not user_agent:
        return DeviceType.UNKNOWN
    ua = parse_ua(user_agent)
    if ua.is_bot:
        return DeviceType.BOT
    if ua.is_tablet:
        return DeviceType.TABLET
    if ua.is_mobile:
        return DeviceType.MOBILE
    if ua.is_pc:
        return DeviceType.DESKTOP
    return DeviceType.UNKNOWN
