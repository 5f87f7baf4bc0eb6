"""Text helpers for GIF ideas, tags, titles, captions and moderation.

Every helper degrades to a local heuristic when the studio is in demo mode or
the provider call fails, so callers always get a usable value back.
"""

from __future__ import annotations

import json
import random
import re
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel

from ..util.logging import get_logger
from .client import GenerationClient

logger = get_logger(__name__)

GifStyle = Literal["reaction", "meme", "aesthetic", "funny"]
ContentRating = Literal["pg", "pg13", "r", "unhinged"]
CaptionMood = Literal["funny", "spicy", "wholesome", "sarcastic", "relatable"]
CaptionRefinement = Literal["funnier", "spicier", "shorter", "weirder", "more_wholesome"]

RATINGS = ("pg", "pg13", "r", "unhinged")

REFINEMENT_INSTRUCTIONS: Dict[str, str] = {
    "funnier": "Make it funnier with more punchiness or absurdist humor",
    "spicier": "Add more edge or sass while staying workplace-appropriate",
    "shorter": "Make it shorter and snappier (under 5 words if possible)",
    "weirder": "Make it more absurd or surreal in a funny way",
    "more_wholesome": "Make it more positive and heartwarming",
}

GENERIC_CAPTIONS = [
    "When you realize it's only Tuesday",
    "Me pretending to understand",
    "This is fine",
    "Plot twist",
    "Nobody told me about this",
    "My face when",
    "Live footage of me",
    "POV: you just found out",
]
BIRTHDAY_CAPTIONS = [
    "When the cake is fake",
    "Another year older, still no clue",
    "Birthday calories don't count",
    "Making wishes, lowering expectations",
    "Aged like fine wine, act like cheap beer",
]
WORK_CAPTIONS = [
    "Per my last email",
    "This meeting could've been an email",
    "Deadline? What deadline?",
    "Professional panic mode activated",
    "Out of office energy",
]
MOOD_CAPTIONS: Dict[str, List[str]] = {
    "funny": ["I can't even", "Nailed it", "Task failed successfully", "Big if true", "Story of my life"],
    "spicy": ["Choose violence", "No thoughts just chaos", "And I took that personally", "Zero regrets", "Main character energy"],
    "wholesome": ["You got this", "Proud of you", "Self care moment", "Good vibes only", "Sending hugs"],
    "sarcastic": ["Oh definitely", "Sure Jan", "Shocking absolutely no one", "How surprising", "Wow who could've guessed"],
    "relatable": ["It me", "Why are we like this", "Every single time", "Same", "100% accurate"],
}


class SafetyVerdict(BaseModel):
    is_safe: bool = True
    reason: Optional[str] = None


class TextAssistant:
    """Thin prompt library on top of ``GenerationClient.complete_text``."""

    def __init__(self, client: GenerationClient, *, rng: Optional[random.Random] = None) -> None:
        self.client = client
        self.rng = rng or random.Random()

    def _ask(self, prompt: str, purpose: str) -> Optional[str]:
        result = self.client.complete_text(prompt)
        if result.is_demo:
            return None
        if not result.success or not isinstance(result.payload, str):
            logger.warning("%s failed, using local fallback: %s", purpose, result.error)
            return None
        return result.payload.strip()

    def enhance_prompt(self, prompt: str) -> str:
        text = self._ask(
            "You are a video prompt engineer. Enhance this prompt for AI video generation, making it more "
            "descriptive and visually specific. Keep it under 200 characters.\n\n"
            f'Original prompt: "{prompt}"\n\nEnhanced prompt:',
            "Prompt enhancement",
        )
        return text or prompt

    def generate_gif_ideas(self, topic: str, count: int = 5, style: Optional[GifStyle] = None) -> List[str]:
        style_line = f"Style: {style} GIFs." if style else ""
        text = self._ask(
            f'Generate {count} creative GIF ideas for the topic: "{topic}". {style_line}\n\n'
            "Each idea should be a short, vivid description that would make a great looping GIF animation.\n"
            "Format: Return only the ideas, one per line, no numbering.\n\nIdeas:",
            "Idea generation",
        )
        if text:
            ideas = [line.strip() for line in text.split("\n")]
            ideas = [line for line in ideas if len(line) > 5 and not line.startswith("-")][:count]
            if ideas:
                return ideas
        return default_ideas(topic, count)

    def generate_tags(self, description: str) -> List[str]:
        text = self._ask(
            "Generate 8-10 relevant search tags for this GIF description. Include emotion words, actions, "
            f'and common search terms.\n\nDescription: "{description}"\n\n'
            "Return only the tags, comma-separated, lowercase:",
            "Tag generation",
        )
        if text:
            tags = [re.sub(r"[^a-z0-9\s]", "", tag.strip().lower()) for tag in text.split(",")]
            tags = [tag for tag in tags if 1 < len(tag) < 20]
            if len(tags) > 3:
                return tags
        return basic_tags(description)

    def classify_content_rating(self, description: str) -> ContentRating:
        text = self._ask(
            "Classify the content rating for this GIF description. Choose exactly one:\n"
            "- pg: Family-friendly, no adult content\n"
            "- pg13: Mild crude humor, mild language\n"
            "- r: Strong language, crude humor, suggestive content\n"
            "- unhinged: Inappropriate workplace content, wild humor\n\n"
            f'Description: "{description}"\n\nRating (one word only):',
            "Rating classification",
        )
        rating = (text or "pg").lower().strip()
        return rating if rating in RATINGS else "pg"  # type: ignore[return-value]

    def generate_title(self, description: str) -> str:
        text = self._ask(
            f'Create a short, catchy title (3-5 words) for this GIF:\n\nDescription: "{description}"\n\nTitle:',
            "Title generation",
        )
        return text or " ".join(description.split(" ")[:3])

    def check_content_safety(self, prompt: str) -> SafetyVerdict:
        text = self._ask(
            "As an AI moderator for a GIF search engine called Saucy, evaluate the following prompt for safety.\n"
            "Check for: explicit adult content, hate speech, severe violence, or harassment.\n\n"
            f'Prompt: "{prompt}"\n\n'
            'Return your decision in JSON format:\n{ "isSafe": boolean, "reason": "brief explanation if unsafe" }',
            "Safety check",
        )
        if not text:
            return SafetyVerdict()
        match = re.search(r"\{[\s\S]*\}", text)
        if match:
            try:
                data = json.loads(match.group(0))
                return SafetyVerdict(is_safe=bool(data.get("isSafe", True)), reason=data.get("reason"))
            except (json.JSONDecodeError, AttributeError):
                logger.warning("Safety verdict was not valid JSON; falling back to text scan")
        return SafetyVerdict(is_safe='"issafe": false' not in text.lower())

    def generate_caption_suggestions(
        self,
        context: str,
        mood: Optional[CaptionMood] = None,
        count: int = 5,
    ) -> List[str]:
        mood_line = (
            f"The captions should have a {mood} vibe." if mood else "Mix different vibes: funny, relatable, sarcastic."
        )
        text = self._ask(
            f'You are a meme caption writer for GIFs. Generate {count} short, punchy captions for a GIF showing: "{context}"\n\n'
            f"{mood_line}\n\n"
            "Rules:\n"
            "- Keep captions SHORT (under 8 words ideally, max 12)\n"
            "- Use internet humor style (relatable, self-deprecating, absurdist)\n"
            "- No hashtags, emojis, or @mentions\n"
            "- Make them work for reaction GIFs in Slack/workplace settings\n"
            "- Avoid anything offensive or inappropriate for work\n\n"
            'Return ONLY a JSON array of strings, no explanation:\n["caption 1", "caption 2", ...]',
            "Caption generation",
        )
        if text:
            match = re.search(r"\[[\s\S]*\]", text)
            if match:
                try:
                    captions = [str(c) for c in json.loads(match.group(0))]
                    return captions[:count]
                except json.JSONDecodeError:
                    logger.warning("Caption response was not a JSON array")
        return self.default_captions(context, mood, count)

    def generate_captions_for_gif(self, description: str, context: str, count: int = 5) -> List[str]:
        return self.generate_caption_suggestions(f"{description} (context: {context})", None, count)

    def refine_caption(self, caption: str, refinement: CaptionRefinement) -> str:
        text = self._ask(
            f'Refine this meme caption. Original: "{caption}"\n\n'
            f"Instruction: {REFINEMENT_INSTRUCTIONS[refinement]}\n\n"
            "Rules:\n- Keep it SHORT (under 10 words)\n- Stay workplace-appropriate\n"
            "- Maintain the reaction-GIF vibe\n\nReturn ONLY the new caption, no quotes or explanation.",
            "Caption refinement",
        )
        if text is None:
            return basic_refinement(caption, refinement)
        return re.sub(r"^[\"']|[\"']$", "", text).strip() or caption

    def default_captions(self, context: str, mood: Optional[str], count: int) -> List[str]:
        lowered = context.lower()
        if "birthday" in lowered or "cake" in lowered:
            pool = BIRTHDAY_CAPTIONS
        elif any(word in lowered for word in ("work", "office", "meeting")):
            pool = WORK_CAPTIONS
        elif mood in MOOD_CAPTIONS:
            pool = MOOD_CAPTIONS[mood]
        else:
            pool = GENERIC_CAPTIONS
        shuffled = list(pool)
        self.rng.shuffle(shuffled)
        return shuffled[:count]


def default_ideas(topic: str, count: int) -> List[str]:
    templates = [
        f"{topic} celebration dance",
        f"{topic} reaction face",
        f"{topic} funny moment",
        f"{topic} excited animation",
        f"{topic} relatable moment",
        f"{topic} dramatic reveal",
        f"{topic} satisfying loop",
        f"{topic} mood",
    ]
    return templates[:count]


def basic_tags(description: str) -> List[str]:
    words = re.sub(r"[^a-z0-9\s]", "", description.lower()).split()
    unique: List[str] = []
    for word in words:
        if 2 < len(word) < 15 and word not in unique:
            unique.append(word)
    return unique[:8]


def basic_refinement(caption: str, refinement: str) -> str:
    if refinement == "shorter":
        return " ".join(caption.split(" ")[:4]) or caption
    if refinement == "funnier":
        return caption + " tho"
    if refinement == "spicier":
        return "Honestly, " + caption.lower()
    if refinement == "weirder":
        return caption + " but make it weird"
    if refinement == "more_wholesome":
        return "Lowkey " + caption
    return caption
