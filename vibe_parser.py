"""
Dispensary Vibe Recommender — Vibe Parser

Translates a free-text "vibe" query into a target terpene profile plus the
effect labels shown to the customer.

Matching is plain substring containment over the lowercased query, evaluated
as an ordered rule list (first match wins):
  1. "activity:<text>"            — activity planner queries
  2. "cannabis question:<text>"   — education chat queries
  3. product category keywords    — concentrate, flower, edible, vape
  4. direct VIBE_MAPPINGS lookup  — table order
  5. balanced default
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from models import TerpeneProfile, VibeMapping

logger = logging.getLogger(__name__)

ACTIVITY_PREFIX = 'activity:'
EDUCATION_PREFIX = 'cannabis question:'


# ============================================================
# Vibe → Terpene Table
# ============================================================

VIBE_MAPPINGS: dict[str, VibeMapping] = {
    'relaxed': VibeMapping(
        terpenes={'myrcene': 0.8, 'linalool': 0.7, 'caryophyllene': 0.5},
        effects=['Relaxation', 'Stress Relief'],
    ),
    'sleepy': VibeMapping(
        terpenes={'myrcene': 0.9, 'linalool': 0.8, 'terpinolene': 0.2},
        effects=['Sedation', 'Sleep Aid'],
    ),
    'energized': VibeMapping(
        terpenes={'limonene': 0.8, 'pinene': 0.7, 'terpinolene': 0.6},
        effects=['Energy', 'Focus'],
    ),
    'creative': VibeMapping(
        terpenes={'limonene': 0.7, 'pinene': 0.8, 'ocimene': 0.6},
        effects=['Creativity', 'Euphoria'],
    ),
    'happy': VibeMapping(
        terpenes={'limonene': 0.8, 'pinene': 0.5, 'caryophyllene': 0.4},
        effects=['Mood Elevation', 'Euphoria'],
    ),
    'focused': VibeMapping(
        terpenes={'pinene': 0.9, 'limonene': 0.6, 'terpinolene': 0.5},
        effects=['Focus', 'Mental Clarity'],
    ),
    'pain relief': VibeMapping(
        terpenes={'caryophyllene': 0.8, 'myrcene': 0.7, 'humulene': 0.6},
        effects=['Pain Relief', 'Anti-inflammatory'],
    ),
    'social': VibeMapping(
        terpenes={'limonene': 0.7, 'caryophyllene': 0.6, 'pinene': 0.5},
        effects=['Social Ease', 'Mood Elevation'],
    ),
    'calm': VibeMapping(
        terpenes={'linalool': 0.8, 'myrcene': 0.7, 'caryophyllene': 0.5},
        effects=['Calm', 'Relaxation'],
    ),
    'appetite': VibeMapping(
        terpenes={'myrcene': 0.7, 'caryophyllene': 0.6, 'humulene': 0.4},
        effects=['Appetite Stimulation', 'Hunger'],
    ),
}

BALANCED_PROFILE: TerpeneProfile = {
    'myrcene': 0.5, 'limonene': 0.5, 'pinene': 0.5, 'caryophyllene': 0.5,
}
EDUCATIONAL_BALANCED_PROFILE: TerpeneProfile = {
    'myrcene': 0.4, 'limonene': 0.4, 'pinene': 0.4, 'caryophyllene': 0.4,
}
DEFAULT_EFFECTS = ['Custom Experience']


# Query keyword → catalog category. Order matters: first hit wins.
CATEGORY_KEYWORDS: dict[str, str] = {
    'concentrate': 'concentrate',
    'concentrates': 'concentrate',
    'extracts': 'concentrate',
    'flower': 'flower',
    'buds': 'flower',
    'edible': 'edible',
    'edibles': 'edible',
    'vape': 'vaporizer',
    'vapes': 'vaporizer',
    'cartridge': 'vaporizer',
    'cartridges': 'vaporizer',
    'vaporizer': 'vaporizer',
    'vaporizers': 'vaporizer',
}


def detect_category(query: str) -> Optional[str]:
    """Return the catalog category named anywhere in the query, if any."""
    q = (query or '').lower()
    for keyword, category in CATEGORY_KEYWORDS.items():
        if keyword in q:
            return category
    return None


# ============================================================
# Rules
# ============================================================

@dataclass(frozen=True)
class ParsedVibe:
    terpene_profile: TerpeneProfile
    effects: list[str]


@dataclass
class VibeRule:
    """
    One parser rule. `predicate` sees the lowercased query; `vibe` names a
    VIBE_MAPPINGS entry whose terpenes are used when `terpenes` is None.
    """
    name: str
    predicate: Callable[[str], bool]
    effects: list[str]
    vibe: Optional[str] = None
    terpenes: Optional[TerpeneProfile] = None

    def resolve(self, mappings: Mapping[str, VibeMapping]) -> ParsedVibe:
        if self.terpenes is not None:
            profile = dict(self.terpenes)
        else:
            profile = dict(mappings[self.vibe].terpenes)
        return ParsedVibe(terpene_profile=profile, effects=list(self.effects))


def _prefixed(prefix: str, *keywords: str) -> Callable[[str], bool]:
    """Query starts with `prefix` and its remainder contains any keyword."""
    def check(q: str) -> bool:
        if not q.startswith(prefix):
            return False
        rest = q[len(prefix):].strip()
        return not keywords or any(k in rest for k in keywords)
    return check


def _contains(*keywords: str) -> Callable[[str], bool]:
    return lambda q: any(k in q for k in keywords)


ACTIVITY_RULES: list[VibeRule] = [
    VibeRule('activity_social', _prefixed(ACTIVITY_PREFIX, 'party', 'social', 'concert'),
             ['Social Enhancement', 'Energy', 'Mood Elevation'], vibe='social'),
    VibeRule('activity_creative', _prefixed(ACTIVITY_PREFIX, 'creative', 'art', 'music'),
             ['Creativity', 'Focus', 'Inspiration'], vibe='creative'),
    VibeRule('activity_outdoor', _prefixed(ACTIVITY_PREFIX, 'hike', 'hiking', 'outdoor', 'exercise'),
             ['Energy', 'Focus', 'Physical Activity'], vibe='energized'),
    VibeRule('activity_relax', _prefixed(ACTIVITY_PREFIX, 'movie', 'relax', 'chill'),
             ['Relaxation', 'Calm', 'Enjoyment'], vibe='relaxed'),
    VibeRule('activity_default', _prefixed(ACTIVITY_PREFIX),
             ['Activity-Optimized', 'Balanced Experience'], terpenes=BALANCED_PROFILE),
]

EDUCATION_RULES: list[VibeRule] = [
    VibeRule('education_relax', _prefixed(EDUCATION_PREFIX, 'relax', 'sleep', 'anxiety'),
             ['Educational', 'Relaxation', 'Calm'], vibe='relaxed'),
    VibeRule('education_energy', _prefixed(EDUCATION_PREFIX, 'energy', 'focus', 'alert'),
             ['Educational', 'Energy', 'Focus'], vibe='energized'),
    VibeRule('education_pain', _prefixed(EDUCATION_PREFIX, 'pain', 'inflammation', 'relief'),
             ['Educational', 'Pain Relief'], vibe='pain relief'),
    VibeRule('education_creative', _prefixed(EDUCATION_PREFIX, 'creat', 'inspire', 'art'),
             ['Educational', 'Creativity'], vibe='creative'),
    VibeRule('education_default', _prefixed(EDUCATION_PREFIX),
             ['Educational', 'Cannabis Information'], terpenes=EDUCATIONAL_BALANCED_PROFILE),
]

CATEGORY_RULES: list[VibeRule] = [
    VibeRule('category_concentrate', _contains('concentrate', 'extract'),
             ['Potent Experience', 'Concentrated Effects'],
             terpenes={'myrcene': 0.5, 'limonene': 0.5, 'pinene': 0.5, 'caryophyllene': 0.6}),
    VibeRule('category_flower', _contains('flower', 'bud'),
             ['Full Spectrum', 'Traditional Experience'],
             terpenes={'myrcene': 0.6, 'limonene': 0.4, 'pinene': 0.4, 'caryophyllene': 0.4}),
    VibeRule('category_edible', _contains('edible'),
             ['Long-lasting', 'Body Effects'],
             terpenes={'myrcene': 0.7, 'limonene': 0.3, 'caryophyllene': 0.5}),
    VibeRule('category_vape', _contains('vape', 'cartridge'),
             ['Quick Onset', 'Precise Dosing'],
             terpenes={'limonene': 0.7, 'pinene': 0.6, 'terpinolene': 0.5}),
]

PARSER_RULES: list[VibeRule] = ACTIVITY_RULES + EDUCATION_RULES + CATEGORY_RULES


def _lookup_vibe(q: str, mappings: Mapping[str, VibeMapping]) -> Optional[ParsedVibe]:
    for vibe, mapping in mappings.items():
        if vibe in q:
            return ParsedVibe(
                terpene_profile=dict(mapping.terpenes),
                effects=list(mapping.effects),
            )
    return None


def parse_vibe(
    query: str,
    mappings: Optional[Mapping[str, VibeMapping]] = None,
    rules: Optional[list[VibeRule]] = None,
) -> ParsedVibe:
    """
    Map a free-text query to a target terpene profile and effect labels.
    Never fails; unknown queries get the balanced default.

    Args:
        query: raw vibe text, any case
        mappings: vibe table (defaults to VIBE_MAPPINGS)
        rules: ordered rule list (defaults to PARSER_RULES)
    """
    mappings = VIBE_MAPPINGS if mappings is None else mappings
    rules = PARSER_RULES if rules is None else rules
    q = (query or '').lower()

    for rule in rules:
        if not rule.predicate(q):
            continue
        if rule.vibe is not None and rule.vibe not in mappings:
            # Edited tables may drop a canonical vibe; keep looking.
            logger.warning("Vibe rule %s references missing mapping %r", rule.name, rule.vibe)
            continue
        logger.debug("Vibe %r matched rule %s", query, rule.name)
        return rule.resolve(mappings)

    direct = _lookup_vibe(q, mappings)
    if direct is not None:
        return direct

    return ParsedVibe(terpene_profile=dict(BALANCED_PROFILE), effects=list(DEFAULT_EFFECTS))
