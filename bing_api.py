"""
Bing spell-check and web-search clients.

Each call issues a single GET request with the subscription key header and
returns a typed result: ApiSuccess carrying the payload, or ApiFailure
carrying a human-readable message.
"""

import logging
import subprocess
import webbrowser
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from reconciler import FlaggedToken, InvalidArgumentError, Suggestion, reconcile

logger = logging.getLogger(__name__)

SPELLCHECK_ENDPOINT = "https://api.bing.microsoft.com/v7.0/spellcheck"
SEARCH_ENDPOINT = "https://api.bing.microsoft.com/v7.0/search"
KEY_HEADER = "Ocp-Apim-Subscription-Key"
SPELL_MODES = ("spell", "proof")
SAFE_SEARCH_LEVELS = ("off", "moderate", "strict")


@dataclass
class Settings:
    """Request defaults, normally built from the [API], [Search] and [Browser] config sections."""
    spellcheck_endpoint: str = SPELLCHECK_ENDPOINT
    search_endpoint: str = SEARCH_ENDPOINT
    timeout: float = 10.0
    market: str = "en-gb"
    safe_search: str = "moderate"
    count: int = 10
    offset: int = 0
    site: str = "stackoverflow.com"
    browser_path: str = ""

    @classmethod
    def from_config(cls, config):
        defaults = cls()
        return cls(
            spellcheck_endpoint=config.get('API', 'spellcheck_endpoint', fallback=defaults.spellcheck_endpoint),
            search_endpoint=config.get('API', 'search_endpoint', fallback=defaults.search_endpoint),
            timeout=config.getfloat('API', 'timeout', fallback=defaults.timeout),
            market=config.get('Search', 'market', fallback=defaults.market),
            safe_search=config.get('Search', 'safe_search', fallback=defaults.safe_search),
            count=config.getint('Search', 'count', fallback=defaults.count),
            offset=config.getint('Search', 'offset', fallback=defaults.offset),
            site=config.get('Search', 'site', fallback=defaults.site),
            browser_path=config.get('Browser', 'path', fallback=defaults.browser_path),
        )


@dataclass
class ApiSuccess:
    data: Any
    ok = True


@dataclass
class ApiFailure:
    message: str
    status_code: Optional[int] = None
    ok = False


def _get(endpoint, api_key, params, timeout):
    """Issue one GET request and wrap the outcome in a typed result."""
    headers = {KEY_HEADER: api_key}
    try:
        response = requests.get(endpoint, headers=headers, params=params, timeout=timeout)
        response.raise_for_status()
        return ApiSuccess(data=response.json())
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        logger.error(f"Request to {endpoint} failed with HTTP {status}: {e}")
        return ApiFailure(message=f"HTTP {status} from {endpoint}", status_code=status)
    # JSONDecodeError subclasses RequestException
    except requests.exceptions.JSONDecodeError as e:
        logger.error(f"Invalid JSON from {endpoint}: {e}")
        return ApiFailure(message=f"Invalid JSON response from {endpoint}")
    except requests.exceptions.RequestException as e:
        logger.error(f"Error connecting to {endpoint}: {e}")
        return ApiFailure(message=f"Could not reach {endpoint}: {e}")
    except ValueError as e:
        logger.error(f"Invalid JSON from {endpoint}: {e}")
        return ApiFailure(message=f"Invalid JSON response from {endpoint}")


def spell_check(text, api_key, mode="proof", settings=None):
    """
    Send text to the spell-check endpoint.

    Args:
        text (str): The text to check.
        api_key (str): Subscription key.
        mode (str): 'proof' (default) or 'spell'.
        settings (Settings): Endpoint, market and timeout; defaults when None.

    Returns:
        ApiSuccess with the decoded JSON body, or ApiFailure.
    """
    if mode not in SPELL_MODES:
        raise InvalidArgumentError(f"mode must be one of {SPELL_MODES}, got '{mode}'")
    settings = settings or Settings()
    params = {"text": text, "mode": mode, "mkt": settings.market}
    logger.info(f"Sending spell check request in {mode} mode")
    return _get(settings.spellcheck_endpoint, api_key, params, settings.timeout)


def flagged_tokens_from_response(data: Dict[str, Any]) -> List[FlaggedToken]:
    """
    Map a spell-check response body onto FlaggedToken objects.

    Entries without a string token are dropped and suggestions without a
    string suggestion are left out; both are logged as warnings.
    """
    tokens = []
    if not isinstance(data, dict):
        return tokens
    for entry in data.get("flaggedTokens") or []:
        if not isinstance(entry, dict) or not isinstance(entry.get("token"), str):
            logger.warning(f"Ignoring malformed flagged token: {entry!r}")
            continue
        suggestions = []
        for s in entry.get("suggestions") or []:
            if isinstance(s, dict) and isinstance(s.get("suggestion"), str):
                suggestions.append(Suggestion(text=s["suggestion"], score=s.get("score")))
            else:
                logger.warning(f"Ignoring malformed suggestion for '{entry['token']}': {s!r}")
        tokens.append(FlaggedToken(
            token=entry["token"],
            suggestions=suggestions,
            offset=entry.get("offset"),
            type=entry.get("type"),
        ))
    return tokens


def correct_text(text, api_key, mode="proof", settings=None, on_skip=None):
    """Spell check the text and reconcile the flagged tokens into a corrected string."""
    result = spell_check(text, api_key, mode=mode, settings=settings)
    if not result.ok:
        return result
    flagged = flagged_tokens_from_response(result.data)
    correction = reconcile(text, flagged, on_skip=on_skip)
    logger.info(f"Applied {len(correction.applied_corrections)} of {len(flagged)} flagged corrections")
    return ApiSuccess(data=correction)


def build_query(query, site=None):
    """Prefix the query with a site: filter when a site is given."""
    return f"site:{site} {query}" if site else query


def web_search(query, api_key, site=None, settings=None, **overrides):
    """
    Run a web search.

    Keyword overrides (count, offset, market, safe_search) replace the values
    from settings for this call only.
    """
    settings = settings or Settings()
    safe_search = overrides.get("safe_search") or settings.safe_search
    if safe_search.lower() not in SAFE_SEARCH_LEVELS:
        raise InvalidArgumentError(f"safe_search must be one of {SAFE_SEARCH_LEVELS}, got '{safe_search}'")
    count = overrides.get("count")
    offset = overrides.get("offset")
    params = {
        "q": build_query(query, site),
        "count": settings.count if count is None else count,
        "offset": settings.offset if offset is None else offset,
        "mkt": overrides.get("market") or settings.market,
        "safesearch": safe_search,
    }
    logger.info(f"Searching for '{params['q']}'")
    return _get(settings.search_endpoint, api_key, params, settings.timeout)


def result_urls(data):
    """Return the web page URLs of a search response, in rank order."""
    pages = (data or {}).get("webPages", {}).get("value", [])
    return [page["url"] for page in pages if page.get("url")]


def site_search(query, api_key, site=None, settings=None):
    """Search within one site and return the first result URL (None when nothing matched)."""
    settings = settings or Settings()
    result = web_search(query, api_key, site=site or settings.site, settings=settings, count=1, offset=0)
    if not result.ok:
        return result
    urls = result_urls(result.data)
    if not urls:
        logger.info(f"No results for '{query}' on {site or settings.site}")
    return ApiSuccess(data=urls[0] if urls else None)


def open_in_browser(url, browser_path=None):
    """Open a URL with the configured browser, or the system default when none is set."""
    if browser_path:
        logger.info(f"Opening {url} with {browser_path}")
        return subprocess.Popen([browser_path, url])
    logger.info(f"Opening {url} in default browser")
    return webbrowser.open(url)
