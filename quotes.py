"""Daily prompts and best-effort random thoughts from public quote APIs."""

import logging
import random
from datetime import date

import requests

logger = logging.getLogger(__name__)

ZEN_QUOTES_URL = 'https://zenquotes.io/api/random'
ADVICE_SLIP_URL = 'https://api.adviceslip.com/advice'
DEFAULT_TIMEOUT = 3.0

DEEP_THOUGHTS = [
    "What does 'freedom' mean to you in your current stage of life?",
    "Are you being the person you needed when you were younger?",
    "Is it better to be respected or to be liked?",
    "If you could have a 30-minute conversation with your future self, what would you ask?",
    "What is the difference between living and existing?",
    "What is the one thing you would change about the world?",
    "If you could have dinner with anyone, dead or alive, who would it be?",
    "What is the most important lesson you have learned in life?",
    "What makes you truly happy?",
    "What is your definition of success?",
    "How do you want to be remembered?",
    "What is the one thing you are most grateful for?",
    "What is the best piece of advice you have ever received?",
    "What is the one thing you would tell your younger self?",
    "What is the one thing you would do if you knew you could not fail?",
]

PROMPT_MOODS = ['All', 'Happy', 'Sad', 'Anxious', 'Neutral', 'Ambitious']


def local_thought(rng=random):
    return {'text': rng.choice(DEEP_THOUGHTS), 'author': 'MindNest'}


def _zen_quote(url, timeout):
    res = requests.get(url, timeout=timeout)
    res.raise_for_status()
    quote = res.json()[0]
    return {'text': quote['q'], 'author': quote['a']}


def _advice(url, timeout):
    res = requests.get(url, timeout=timeout)
    res.raise_for_status()
    return {'text': res.json()['slip']['advice'], 'author': 'Daily Advice'}


def fetch_random_thought(quote_url=ZEN_QUOTES_URL, advice_url=ADVICE_SLIP_URL,
                         timeout=DEFAULT_TIMEOUT, rng=random):
    """Fetch a quote or a piece of advice, falling back to a local thought on any failure."""
    try:
        if rng.random() > 0.5:
            return _zen_quote(quote_url, timeout)
        return _advice(advice_url, timeout)
    except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as exc:
        logger.debug('Random thought fetch failed, using local fallback: %s', exc)
        return local_thought(rng)


def daily_prompt(prompts, today=None):
    """Pick the prompt of the day; rotates with the day of the month."""
    if not prompts:
        return None
    today = today or date.today()
    return prompts[today.day % len(prompts)]


def filter_prompts(prompts, query='', mood='All'):
    query = (query or '').lower()
    mood = mood or 'All'
    result = []
    for p in prompts:
        if not p or not p.text:
            continue
        matches_search = query in p.text.lower() or bool(p.category and query in p.category.lower())
        matches_mood = mood == 'All' or bool(p.mood and p.mood.lower() == mood.lower())
        if matches_search and matches_mood:
            result.append(p)
    return result
