"""
Intent Classifier - decide between tutor and builder mode from raw user text.

Rules are evaluated top-to-bottom and the first match wins. Each rule is a
plain (name, predicate, outcome) record so it can be tested in isolation.
Keyword lists cover English and Indonesian.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from nevra.schemas import GenerationMode


# =============================================================================
# VOCABULARY
# =============================================================================

CLEAR_QUESTION_PATTERNS = (
    re.compile(r"^(apa|what|why|how|when|where|who|which|mengapa|kenapa|bagaimana|kapan|dimana|siapa)\s+"),
    re.compile(r"^(what\s+(is|are|does|do)|how\s+(to|do|does|can)|bagaimana\s+cara)\b"),
    re.compile(r"^(jelaskan|terangkan|explain|describe|tell\s+me|teach\s+me)\b"),
    re.compile(r"\b(saya|aku)\s+(ingin|mau)\s+belajar\b|\bi(\s+want|\s+would\s+like|'d\s+like)\s+to\s+learn\b"),
)

TUTOR_ONLY_PATTERNS = (
    re.compile(r"\b(jadwal|schedule|routine|rencana|agenda|kalender|calendar)\b"),
    re.compile(r"\b(belajar|learn|learning|study|tutorial|panduan|guide|explain|jelaskan)\b"),
    re.compile(r"^tolong\s+(bantu|help|jelaskan|explain|ajarkan)\b"),
    re.compile(r"^bantu\s+(saya|aku|me|i)\b"),
)

IMPERATIVE_BUILDER_PATTERN = re.compile(
    r"^(?:please\s+|tolong\s+)?(buat|bikin|build|create|make|generate)\s+"
    r"(?:(?:a|an|the|me|my|sebuah|satu)\s+)*"
    r"(?:[\w-]+\s+){0,2}?"
    r"(web|website|webpage|app|application|page|site|aplikasi|halaman|situs|landing\s+page|dashboard|portfolio)\b"
)

# (phrase, weight); high-confidence phrases weigh more
BUILDER_KEYWORDS: Tuple[Tuple[str, int], ...] = (
    ("buat web", 3), ("buat website", 3), ("buat aplikasi", 3), ("build web", 3),
    ("build website", 3), ("create website", 3), ("make app", 3), ("landing page", 3),
    ("website", 1), ("web", 1), ("app", 1), ("aplikasi", 1), ("halaman", 1), ("page", 1),
    ("dashboard", 1), ("portfolio", 1), ("component", 1), ("komponen", 1), ("button", 1),
    ("navbar", 1), ("form", 1), ("layout", 1), ("html", 1), ("css", 1), ("react", 1),
    ("tailwind", 1), ("ui", 1), ("todo", 1), ("calculator", 1), ("kalkulator", 1),
    ("change color", 2), ("ubah warna", 2), ("ganti warna", 2), ("warna", 1), ("color", 1),
    ("style", 1), ("desain", 1), ("design", 1), ("ubah", 1), ("ganti", 1), ("tambah", 1),
    ("hapus", 1), ("edit", 1), ("modify", 1), ("generate", 1), ("build", 1), ("create", 1),
    ("make", 1), ("buat", 1), ("bikin", 1), ("clone", 1), ("template", 1),
)

TUTOR_KEYWORDS: Tuple[Tuple[str, int], ...] = (
    ("what is", 2), ("what are", 2), ("how to", 2), ("bagaimana cara", 2), ("apa itu", 2),
    ("jadwal", 3), ("schedule", 3), ("routine", 3), ("rencana", 3), ("agenda", 3),
    ("what", 1), ("why", 1), ("how", 1), ("when", 1), ("where", 1), ("who", 1), ("which", 1),
    ("apa", 1), ("mengapa", 1), ("kenapa", 1), ("bagaimana", 1), ("kapan", 1), ("dimana", 1),
    ("siapa", 1), ("explain", 1), ("jelaskan", 1), ("terangkan", 1), ("describe", 1),
    ("teach", 1), ("ajarkan", 1), ("learn", 1), ("belajar", 1), ("study", 1), ("tutorial", 1),
    ("guide", 1), ("panduan", 1), ("difference", 1), ("perbedaan", 1), ("meaning", 1),
    ("arti", 1), ("maksud", 1), ("cara", 1),
)

# Bonus applied when a keyword opens the message
START_BONUS = 2

EDIT_COMMAND_PATTERNS = (
    re.compile(r"^(ubah|edit|ganti|modify|change|update|tambah|add|hapus|remove|delete)\b"),
    re.compile(r"^(make\s+it|make\s+the|buat\s+jadi|buat\s+menjadi|jadikan)\b"),
    re.compile(r"^(ubah|ganti|buat|change)\s+(warna|color|style|desain|design|layout|background|font)\b"),
    re.compile(
        r"\b(warna|color)\s+(kuning|yellow|merah|red|biru|blue|hijau|green|putih|white|hitam|black)\b"
    ),
    re.compile(r"^(tambah|tambahkan|add)\s+(a\s+|an\s+)?(button|tombol|gambar|image|komponen|component)\b"),
)


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").strip().lower())


def _phrase_pattern(phrase: str) -> re.Pattern:
    return re.compile(r"\b" + r"\s+".join(re.escape(word) for word in phrase.split()) + r"\b")


_BUILDER_MATCHERS = [(phrase, weight, _phrase_pattern(phrase)) for phrase, weight in BUILDER_KEYWORDS]
_TUTOR_MATCHERS = [(phrase, weight, _phrase_pattern(phrase)) for phrase, weight in TUTOR_KEYWORDS]


def _score(text: str, matchers) -> int:
    score = 0
    for _, weight, pattern in matchers:
        match = pattern.search(text)
        if match:
            score += weight + (START_BONUS if match.start() == 0 else 0)
    return score


def builder_score(text: str) -> int:
    return _score(_normalize(text), _BUILDER_MATCHERS)


def tutor_score(text: str) -> int:
    return _score(_normalize(text), _TUTOR_MATCHERS)


def has_tutor_keyword(text: str) -> bool:
    normalized = _normalize(text)
    return any(pattern.search(normalized) for _, _, pattern in _TUTOR_MATCHERS)


# =============================================================================
# RULES
# =============================================================================

def is_clear_question(text: str) -> bool:
    return any(p.search(text) for p in CLEAR_QUESTION_PATTERNS)


def is_question_with_tutor_keyword(text: str) -> bool:
    return "?" in text and has_tutor_keyword(text)


def is_imperative_build(text: str) -> bool:
    return IMPERATIVE_BUILDER_PATTERN.search(text) is not None


def is_tutor_only_domain(text: str) -> bool:
    return any(p.search(text) for p in TUTOR_ONLY_PATTERNS)


def builder_outscores_tutor(text: str) -> bool:
    return builder_score(text) > tutor_score(text)


@dataclass(frozen=True)
class Rule:
    """One classification rule."""
    name: str
    predicate: Callable[[str], bool]
    outcome: GenerationMode


RULES: List[Rule] = [
    Rule("clear_question", is_clear_question, GenerationMode.TUTOR),
    Rule("question_with_tutor_keyword", is_question_with_tutor_keyword, GenerationMode.TUTOR),
    Rule("imperative_build", is_imperative_build, GenerationMode.BUILDER),
    Rule("tutor_only_domain", is_tutor_only_domain, GenerationMode.TUTOR),
    Rule("keyword_score", builder_outscores_tutor, GenerationMode.BUILDER),
]

DEFAULT_MODE = GenerationMode.TUTOR


def match_rule(text: str, rules: Optional[List[Rule]] = None) -> Optional[Rule]:
    """Return the first rule matching the text, or None."""
    normalized = _normalize(text)
    if not normalized:
        return None
    for rule in rules if rules is not None else RULES:
        if rule.predicate(normalized):
            return rule
    return None


def classify(text: str) -> GenerationMode:
    """
    Classify user text as tutor or builder.

    Never raises; empty input and unmatched input fall to tutor.
    """
    rule = match_rule(text)
    return rule.outcome if rule else DEFAULT_MODE


def is_edit_command(text: str) -> bool:
    normalized = _normalize(text)
    return bool(normalized) and any(p.search(normalized) for p in EDIT_COMMAND_PATTERNS)


def resolve_mode(text: str, session_mode: GenerationMode, has_artifact: bool) -> GenerationMode:
    """
    Pick the mode for a turn given the session context.

    An edit command keeps an active builder session in builder mode while an
    artifact exists; anything else follows classify().
    """
    if session_mode == GenerationMode.BUILDER and has_artifact and is_edit_command(text):
        return GenerationMode.BUILDER
    return classify(text)
