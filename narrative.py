"""
Local narrative for recommendations made without the AI service.

Keyword-driven budtender copy and context-factor tags, so kiosk screens have
something friendly to show when the AI recommender is down or disabled.
"""
from __future__ import annotations
from typing import Optional

from vibe_parser import ACTIVITY_PREFIX

DEFAULT_MESSAGE = (
    "Based on what you're looking for, I've selected products that will give you "
    "a well-balanced experience. These options are versatile and perfect for "
    "various occasions."
)

# (keywords, message); first hit wins
ACTIVITY_MESSAGES: list[tuple[tuple[str, ...], str]] = [
    (('movie', 'netflix', 'watch'),
     "Perfect for movie night! I've selected products that will enhance your viewing "
     "experience with relaxing effects that won't put you to sleep. The edibles are "
     "great for long movie marathons."),
    (('hike', 'hiking', 'outdoor', 'nature'),
     "Adventure awaits! These energizing yet grounding options will enhance your outdoor "
     "experience without weighing you down. The portable options are perfect for "
     "on-the-go enjoyment."),
    (('concert', 'festival', 'music'),
     "Let's make that concert unforgettable! I've recommended uplifting options that will "
     "keep you dancing and enhance the music experience. These are perfect for social events."),
    (('creative', 'art', 'painting', 'writing'),
     "Time to unleash your creativity! These products enhance artistic flow and inspiration "
     "while keeping you focused. Perfect for creative projects and artistic endeavors."),
    (('social', 'party', 'friends'),
     "Get ready to socialize! These uplifting options will enhance conversation and laughter "
     "while keeping you comfortable in social settings."),
    (('exercise', 'workout', 'gym'),
     "Ready to get active? These energizing options will motivate your workout while helping "
     "with focus and endurance. Great for pre-workout preparation."),
]

VIBE_MESSAGES: list[tuple[tuple[str, ...], str]] = [
    (('relax', 'calm', 'chill'),
     "Time to unwind! I've selected products with calming terpenes like linalool and myrcene "
     "that will help melt away stress and tension. Perfect for relaxation time."),
    (('energy', 'energiz', 'active'),
     "Ready to energize? These sativa-dominant options with uplifting terpenes will give you "
     "the boost you need without the jitters. Great for daytime activities!"),
    (('creative', 'creat', 'inspir'),
     "Let your creativity flow! I've chosen products with terpenes like limonene and pinene "
     "that enhance creativity while keeping you focused and inspired."),
    (('focus', 'concentrat'),
     "Time to focus! These products contain terpenes that enhance mental clarity and "
     "concentration, perfect for when you need to get things done."),
    (('sleep', 'rest'),
     "Sweet dreams ahead! I've selected products with sedating terpenes like myrcene that "
     "will help you wind down and get quality rest."),
    (('pain', 'relief'),
     "Relief is on the way! These products contain terpenes like caryophyllene and myrcene "
     "known for their pain-relieving and anti-inflammatory properties."),
    (('happy', 'mood', 'uplift'),
     "Time to lift your spirits! These mood-enhancing options with uplifting terpenes will "
     "help brighten your day and boost your overall mood."),
    (('social',),
     "Get ready to socialize! These products will enhance conversation and laughter while "
     "keeping you comfortable in social settings."),
]

CATEGORY_MESSAGES: dict[str, str] = {
    'flower': "Classic flower power! I've selected premium flower products that offer the "
              "full spectrum cannabis experience with rich terpene profiles.",
    'edible': "Delicious and effective! These edibles provide long-lasting effects that are "
              "perfect for extended experiences. Remember to start low and go slow.",
    'vaporizer': "Clean and convenient! Vape products offer precise dosing and quick onset, "
                 "perfect for when you want control over your experience.",
    'concentrate': "Potent and pure! These concentrates offer powerful effects for experienced "
                   "users who appreciate high-quality extracts.",
}

ACTIVITY_FACTORS: list[tuple[tuple[str, ...], list[str]]] = [
    (('movie', 'netflix'), ['relaxing', 'long-lasting', 'couch-friendly', 'entertainment-enhancing']),
    (('hike', 'hiking', 'outdoor'), ['portable', 'energizing', 'nature-friendly', 'adventure-ready']),
    (('concert', 'festival'), ['portable', 'discreet', 'social', 'music-enhancing']),
    (('creative',), ['creativity-enhancing', 'focus', 'inspiration', 'artistic']),
    (('social',), ['social-enhancing', 'conversation', 'comfortable', 'confident']),
    (('exercise',), ['energizing', 'motivating', 'pre-workout', 'endurance']),
]

VIBE_FACTORS: list[tuple[tuple[str, ...], list[str]]] = [
    (('relax', 'calm'), ['calming', 'stress-relief', 'comfortable', 'tension-relief']),
    (('energy', 'active'), ['energizing', 'daytime-appropriate', 'motivating', 'uplifting']),
    (('creative',), ['creativity-enhancing', 'focus', 'inspiration', 'artistic']),
    (('focus',), ['focusing', 'mental-clarity', 'productivity', 'concentration']),
    (('sleep',), ['sedating', 'sleep-aid', 'nighttime', 'restful']),
    (('pain',), ['pain-relief', 'anti-inflammatory', 'therapeutic', 'medicinal']),
    (('happy', 'mood'), ['mood-enhancing', 'uplifting', 'euphoric', 'joyful']),
    (('social',), ['social-enhancing', 'conversation', 'laughter', 'comfortable']),
]

CATEGORY_FACTORS: dict[str, list[str]] = {
    'flower': ['full-spectrum', 'traditional', 'aromatic'],
    'edible': ['long-lasting', 'discreet', 'precise-dosing'],
    'vaporizer': ['portable', 'clean', 'quick-onset'],
    'concentrate': ['potent', 'pure', 'experienced-user'],
}


def _first_hit(text: str, table: list[tuple[tuple[str, ...], object]]):
    for keywords, value in table:
        if any(k in text for k in keywords):
            return value
    return None


def _activity(vibe: str) -> Optional[str]:
    v = vibe.lower()
    if v.startswith(ACTIVITY_PREFIX):
        return v[len(ACTIVITY_PREFIX):].strip()
    return None


def local_personalized_message(vibe: str, category: Optional[str] = None) -> str:
    activity = _activity(vibe)
    if activity is not None:
        msg = _first_hit(activity, ACTIVITY_MESSAGES)
        if msg:
            return msg
        return (f"Perfect for your {activity}! I've selected products that will enhance your "
                f"experience with the right balance of effects for your planned activity.")

    msg = _first_hit(vibe.lower(), VIBE_MESSAGES)
    if msg:
        return msg
    if category in CATEGORY_MESSAGES:
        return CATEGORY_MESSAGES[category]
    return DEFAULT_MESSAGE


def local_context_factors(vibe: str, category: Optional[str] = None) -> list[str]:
    factors: list[str] = []
    activity = _activity(vibe)
    if activity is not None:
        factors.extend(_first_hit(activity, ACTIVITY_FACTORS)
                       or ['activity-optimized', 'versatile', 'balanced'])
    else:
        factors.extend(_first_hit(vibe.lower(), VIBE_FACTORS) or [])

    factors.extend(CATEGORY_FACTORS.get(category or '', []))

    if not factors:
        factors = ['balanced', 'versatile', 'reliable']
    return factors
