"""Weather lookup scraped from the zgjia.com city pages."""

import logging
from enum import Enum
from typing import Optional

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

WEATHER_BASE_URL = "https://www.zgjia.com"
DEFAULT_CITY = "beijing"
USER_AGENT = "Mozilla/5.0 (compatible; WeatherBot/1.0)"
WEATHER_SELECTOR = ".wendu-box"

# Returned whenever the page cannot be fetched or parsed
UNAVAILABLE = "unavailable"


class Horizon(str, Enum):
    """Which day the lookup targets."""
    TODAY = "today"
    TOMORROW = "tomorrow"


def weather_url(city_code: Optional[str], horizon: Horizon, base_url: str = WEATHER_BASE_URL) -> str:
    """Build the page URL for a city and day."""
    city = city_code or DEFAULT_CITY
    base = base_url.rstrip("/")
    if horizon is Horizon.TOMORROW:
        return f"{base}/{city}/mingtian.html"
    return f"{base}/{city}/"


def extract_weather(html: str) -> Optional[str]:
    """Text of the first weather box on the page, or None."""
    soup = BeautifulSoup(html, "html.parser")
    box = soup.select_one(WEATHER_SELECTOR)
    if box is None:
        return None
    text = box.get_text(" ", strip=True)
    return text or None


async def fetch_weather(
    city_code: Optional[str],
    horizon: Horizon,
    *,
    base_url: str = WEATHER_BASE_URL,
    user_agent: str = USER_AGENT,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    Fetch the weather summary for a city.

    Issues a single GET (no retries, transport-default timeout) and returns
    the text of the page's weather box. Any failure, network or parse, yields
    UNAVAILABLE instead of an exception.

    Args:
        city_code: Lowercase city identifier, passed through as-is.
            None falls back to DEFAULT_CITY.
        horizon: Today or tomorrow.
        base_url: Site root of the weather source.
        user_agent: User-Agent header sent with the request.
        client: Optional shared client (tests inject one with a mock transport).
    """
    url = weather_url(city_code, horizon, base_url)
    headers = {"User-Agent": user_agent}

    try:
        if client is not None:
            resp = await client.get(url, headers=headers)
        else:
            async with httpx.AsyncClient() as own_client:
                resp = await own_client.get(url, headers=headers)
        text = extract_weather(resp.text)
    except Exception as e:
        logger.warning(f"Weather lookup failed for {url}: {e}")
        return UNAVAILABLE

    if text is None:
        logger.warning(f"No weather box found at {url} (status {resp.status_code})")
        return UNAVAILABLE

    logger.debug(f"Weather for {url}: {text}")
    return text
