"""
Extraction strategies: named yt-dlp option bundles tried in priority order.

YouTube strategy order (tried sequentially until one succeeds):
  When YTDLP_PROXY is set:
  P1. Proxy + Android     — Android client routed through the paid proxy
  P2. Proxy + iOS         — iOS client routed through the paid proxy

  When a cookie file is available:
  C1. Android + Cookies   — Android client with an authenticated session

  Always present:
  1.  Android Client      — Android app protocol, bypasses most datacenter IP checks
  2.  iOS Client          — iOS app protocol, different extraction path
  3.  Auto                — yt-dlp defaults, no client spoofing

Every other platform gets a single "Standard" strategy.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .config import Settings
from .platforms import Platform

ANDROID_CLIENT = "android"
IOS_CLIENT = "ios"

ANDROID_USER_AGENT = "com.google.android.youtube/19.09.37 (Linux; U; Android 11) gzip"
IOS_USER_AGENT = "com.google.ios.youtube/19.09.3 (iPhone14,3; U; CPU iOS 15_6 like Mac OS X)"
DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class Strategy:
    """One named combination of client spoofing, proxy and cookie options."""

    name: str
    player_client: Optional[str] = None
    user_agent: Optional[str] = None
    proxy: Optional[str] = None
    cookie_file: Optional[str] = None
    prefer_free_formats: bool = False

    def ytdlp_opts(
        self,
        output_template: Optional[str] = None,
        format_selector: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build a yt-dlp options dict for this strategy."""
        headers: Dict[str, str] = {
            'Accept-Language': 'en-US,en;q=0.9',
        }
        if self.user_agent:
            headers['User-Agent'] = self.user_agent

        opts: Dict[str, Any] = {
            'http_headers': headers,
            'quiet': True,
            'no_warnings': True,
            'noplaylist': True,
            'retries': 2,
            'fragment_retries': 2,
        }

        if self.player_client:
            opts['extractor_args'] = {'youtube': {'player_client': [self.player_client]}}
        if self.proxy:
            opts['proxy'] = self.proxy
        if self.cookie_file:
            opts['cookiefile'] = self.cookie_file
        if self.prefer_free_formats:
            opts['prefer_free_formats'] = True
        if output_template:
            opts['outtmpl'] = output_template
        if format_selector:
            opts['format'] = format_selector

        return opts


STANDARD_STRATEGY = Strategy(
    name="Standard",
    user_agent=DESKTOP_USER_AGENT,
    prefer_free_formats=True,
)


class StrategyCatalog:
    """Produces the ordered strategy list for a platform from the service settings."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def strategies_for(self, platform: Platform) -> List[Strategy]:
        if platform != Platform.YOUTUBE:
            return [STANDARD_STRATEGY]
        return self._youtube_strategies()

    def _youtube_strategies(self) -> List[Strategy]:
        strategies: List[Strategy] = []

        # Paid proxy first: most reliable against datacenter IP blocking
        if self.settings.has_proxy:
            strategies.append(Strategy(
                name="Proxy + Android",
                player_client=ANDROID_CLIENT,
                user_agent=ANDROID_USER_AGENT,
                proxy=self.settings.proxy_url,
            ))
            strategies.append(Strategy(
                name="Proxy + iOS",
                player_client=IOS_CLIENT,
                user_agent=IOS_USER_AGENT,
                proxy=self.settings.proxy_url,
            ))

        if self.settings.has_cookies:
            strategies.append(Strategy(
                name="Android + Cookies",
                player_client=ANDROID_CLIENT,
                user_agent=ANDROID_USER_AGENT,
                cookie_file=self.settings.cookies_file,
            ))

        strategies.append(Strategy(
            name="Android Client",
            player_client=ANDROID_CLIENT,
            user_agent=ANDROID_USER_AGENT,
        ))
        strategies.append(Strategy(
            name="iOS Client",
            player_client=IOS_CLIENT,
            user_agent=IOS_USER_AGENT,
        ))
        strategies.append(Strategy(name="Auto"))

        return strategies
