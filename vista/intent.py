import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import ConfigurationError, UpstreamError
from .llm import PlannerClient, build_turn_context
from .schemas import DEFAULT_RATIO, DEFAULT_SOURCE, RATIOS, PlannerResponse, ToolCall
from .tools import get_tool_spec, openai_tools

logger = logging.getLogger("uvicorn.error")

WEATHER_RE = re.compile(
    r"\b(weather|temperatures?|forecast|rainfall|snowfall|precipitation|wind\s+speed)\b",
    re.IGNORECASE,
)
ISO_DATE_RE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
DAYS_AGO_RE = re.compile(
    r"\b(\d+|a|one|two|three|four|five|six|seven|eight|nine|ten)\s+days?\s+ago\b",
    re.IGNORECASE,
)
DAY_BEFORE_YESTERDAY_RE = re.compile(r"\bday\s+before\s+yesterday\b", re.IGNORECASE)
YESTERDAY_RE = re.compile(r"\byesterday\b", re.IGNORECASE)
LAST_WEEK_RE = re.compile(r"\b(last|past)\s+week\b", re.IGNORECASE)
NUMBER_WORDS = {
    "a": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
}
CITY_PREPOSITIONS = {"in", "for", "at"}
CITY_STOP_WORDS = {
    "yesterday",
    "today",
    "tomorrow",
    "last",
    "past",
    "this",
    "on",
    "ago",
    "day",
    "days",
    "week",
    "before",
    "was",
    "is",
    "were",
    "the",
    "a",
    "weather",
    "like",
    "what",
    "whats",
    "what's",
    "how",
    "please",
    "during",
    "and",
    "with",
    "it",
}
TOKEN_STRIP = ".,!?;:\"()[]"

SEARCH_RE = re.compile(
    r"\b(search(?:\s+for)?|find(?:\s+me)?|show\s+me|look\s+(?:for|up)|get\s+me|browse)\b",
    re.IGNORECASE,
)
SEARCH_STRIP_RE = re.compile(
    r"\b(please|can\s+you|could\s+you|would\s+you|search(?:\s+for)?|find(?:\s+me)?|show\s+me|look\s+(?:for|up)|"
    r"get\s+me|browse|some|a\s+few|stock|(?:photos?|pictures?|images?|pics?)(?:\s+of)?)\b",
    re.IGNORECASE,
)
GENERATE_RE = re.compile(r"\b(generate|create|draw|paint|render|imagine|make)\b", re.IGNORECASE)
GENERATE_STRIP_RE = re.compile(
    r"\b(please|can\s+you|could\s+you|would\s+you|(?:generate|create|draw|paint|render|imagine|make)(?:\s+me)?|"
    r"(?:an?\s+|some\s+)?(?:ai\s+)?(?:images?|pictures?|photos?|illustrations?|drawings?|paintings?|art)(?:\s+of)?)\b",
    re.IGNORECASE,
)
GENERATE_COUNT_RE = re.compile(r"\b([1-5])\s+(?:images?|pictures?|photos?|variations?|versions?)(?:\s+of)?\b", re.IGNORECASE)

ASK_CITY = "Which city should I look up the weather for?"
ASK_DATE = "Which date do you mean? Please use YYYY-MM-DD."
ASK_QUERY = "What would you like me to search for?"
ASK_PROMPT = "What would you like me to create?"


@dataclass
class Resolution:
    tool_call: Optional[ToolCall] = None
    reply: Optional[str] = None
    planner: Optional[PlannerResponse] = None
    source: str = "none"


def preferred_ratio(state: Dict[str, Any]) -> str:
    for key in ("ratio", "aspect_ratio", "preferred_ratio"):
        value = state.get(key) if isinstance(state, dict) else None
        if isinstance(value, str) and value.strip() in RATIOS:
            return value.strip()
    return DEFAULT_RATIO


def _tokens(message: str) -> List[str]:
    return [t.strip(TOKEN_STRIP) for t in message.split() if t.strip(TOKEN_STRIP)]


def _is_city_word(token: str) -> bool:
    return token.lower() not in CITY_STOP_WORDS and not any(ch.isdigit() for ch in token)


def extract_city(message: str) -> Optional[str]:
    tokens = _tokens(message)
    for idx, token in enumerate(tokens):
        if token.lower() not in CITY_PREPOSITIONS:
            continue
        words: List[str] = []
        for nxt in tokens[idx + 1 :]:
            if not _is_city_word(nxt) or nxt.lower() in CITY_PREPOSITIONS:
                break
            words.append(nxt)
        if words:
            return " ".join(words)
    # "<City> weather" / "<City>'s weather"
    for idx, token in enumerate(tokens):
        if token.lower() != "weather" or idx == 0:
            continue
        words = []
        for prev in reversed(tokens[:idx]):
            cleaned = re.sub(r"'s$", "", prev)
            if not cleaned[:1].isupper() or not _is_city_word(cleaned):
                break
            words.insert(0, cleaned)
        if words:
            return " ".join(words)
    return None


def has_temporal_marker(message: str) -> bool:
    return any(
        pattern.search(message)
        for pattern in (ISO_DATE_RE, DAYS_AGO_RE, YESTERDAY_RE, LAST_WEEK_RE)
    )


def resolve_date(message: str, today: date) -> Optional[str]:
    iso = ISO_DATE_RE.search(message)
    if iso:
        try:
            return datetime.strptime(iso.group(1), "%Y-%m-%d").date().isoformat()
        except ValueError:
            return None
    offset: Optional[int] = None
    ago = DAYS_AGO_RE.search(message)
    if ago:
        raw = ago.group(1).lower()
        offset = int(raw) if raw.isdigit() else NUMBER_WORDS.get(raw)
    elif DAY_BEFORE_YESTERDAY_RE.search(message):
        offset = 2
    elif YESTERDAY_RE.search(message):
        offset = 1
    elif LAST_WEEK_RE.search(message):
        offset = 7
    if offset is None:
        return None
    try:
        return (today - timedelta(days=offset)).isoformat()
    except OverflowError:
        return None


def _clean_text(text: str) -> str:
    return " ".join(text.split()).strip(" .?!,;:-")


def strip_search_phrases(message: str) -> str:
    return _clean_text(SEARCH_STRIP_RE.sub(" ", message))


def strip_generate_phrases(message: str) -> str:
    return _clean_text(GENERATE_STRIP_RE.sub(" ", GENERATE_COUNT_RE.sub(" ", message)))


# Fallback rules, evaluated top to bottom; the first rule that matches decides.


def match_weather_history(message: str, state: Dict[str, Any], today: date) -> Optional[Resolution]:
    if not has_temporal_marker(message):
        return None
    city = extract_city(message)
    if not city:
        return Resolution(reply=ASK_CITY, source="heuristic")
    day = resolve_date(message, today)
    if not day:
        return Resolution(reply=ASK_DATE, source="heuristic")
    call = ToolCall(name="get_weather_history", arguments={"city": city, "date": day})
    return Resolution(tool_call=call, source="heuristic")


def match_search(message: str, state: Dict[str, Any], today: date) -> Optional[Resolution]:
    if not SEARCH_RE.search(message) or WEATHER_RE.search(message):
        return None
    query = strip_search_phrases(message)
    if not query:
        return Resolution(reply=ASK_QUERY, source="heuristic")
    call = ToolCall(
        name="search_library",
        arguments={"query": query, "source": DEFAULT_SOURCE, "ratio": preferred_ratio(state)},
    )
    return Resolution(tool_call=call, source="heuristic")


def match_generation(message: str, state: Dict[str, Any], today: date) -> Optional[Resolution]:
    if not GENERATE_RE.search(message):
        return None
    prompt = strip_generate_phrases(message)
    if not prompt:
        return Resolution(reply=ASK_PROMPT, source="heuristic")
    count_match = GENERATE_COUNT_RE.search(message)
    call = ToolCall(
        name="generate_ai",
        arguments={
            "prompt": prompt,
            "count": int(count_match.group(1)) if count_match else 1,
            "aspect_ratio": preferred_ratio(state),
        },
    )
    return Resolution(tool_call=call, source="heuristic")


HEURISTIC_RULES: Tuple[Callable[[str, Dict[str, Any], date], Optional[Resolution]], ...] = (
    match_weather_history,
    match_search,
    match_generation,
)


def resolve_heuristically(message: str, state: Dict[str, Any], today: date) -> Optional[Resolution]:
    for rule in HEURISTIC_RULES:
        resolution = rule(message, state, today)
        if resolution is not None:
            return resolution
    return None


class IntentResolver:
    def __init__(self, planner: PlannerClient, clock: Optional[Callable[[], date]] = None):
        self.planner = planner
        self.clock = clock or date.today

    async def resolve(self, message: str, summary: Optional[str] = None, state: Optional[Dict[str, Any]] = None) -> Resolution:
        state = state or {}
        planner_error: Optional[Exception] = None
        response: Optional[PlannerResponse] = None
        try:
            response = await self.planner.plan_turn(build_turn_context(message, summary, state), openai_tools())
        except (UpstreamError, ConfigurationError) as exc:
            logger.warning("Planner unavailable, using text heuristics: %s", exc)
            planner_error = exc

        if response is not None and response.tool_calls:
            first = response.tool_calls[0]
            get_tool_spec(first.name)
            if len(response.tool_calls) > 1:
                dropped = [c.name for c in response.tool_calls[1:]]
                logger.info("Planner proposed %d tool calls; running %s, dropping %s", len(response.tool_calls), first.name, dropped)
            return Resolution(tool_call=first, reply=response.text or None, planner=response, source="planner")
        if response is not None and response.text:
            return Resolution(reply=response.text, planner=response, source="planner")

        resolution = resolve_heuristically(message, state, self.clock())
        if resolution is not None:
            resolution.planner = response
            return resolution
        if planner_error is not None:
            raise planner_error
        return Resolution(planner=response)
