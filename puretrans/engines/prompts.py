"""
Prompt templates for legal translation.

The system prompt carries every instruction (purity rules, glossary); the user
message carries only the text, so engines have nothing to echo back but the
translation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from puretrans.core.models import Language
from puretrans.engines.base import EnginePrompt

LANGUAGE_NAMES = {
    Language.ARABIC: "Arabic",
    Language.FRENCH: "French",
}


class PromptStrategy(Enum):
    ZERO_SHOT = "zero_shot"
    FEW_SHOT = "few_shot"
    ROLE_BASED = "role_based"


@dataclass
class PromptTemplate:
    """Template for generating translation prompts."""
    name: str
    strategy: PromptStrategy
    system_prompt: str
    few_shot_examples: List[Tuple[str, str]] = field(default_factory=list)
    usage_count: int = 0

    def render_system(
        self,
        source_language: Language,
        target_language: Language,
        glossary_section: str = "",
        domain_hint: Optional[str] = None,
    ) -> str:
        parts = [self.system_prompt.format(
            source_lang=LANGUAGE_NAMES[source_language],
            target_lang=LANGUAGE_NAMES[target_language],
        )]
        if domain_hint:
            parts.append(f"\nLegal domain: {domain_hint}")
        if self.few_shot_examples:
            parts.append("\nExamples:")
            for source, target in self.few_shot_examples:
                parts.append(f"- {source} => {target}")
        if glossary_section:
            parts.append(f"\n{glossary_section}")
        return "\n".join(parts)


_PURITY_RULES = """CRITICAL RULES:
- Output ONLY the translated text in {target_lang}
- Use only the {target_lang} script; never leave {source_lang} words in the output
- No explanations, no commentary, no labels, no quotation marks around the answer
- Never output interface labels, version tags or product names
- Keep article numbers, dates and amounts unchanged"""


class PromptLibrary:
    """Library of legal translation prompt templates."""

    def __init__(self):
        self.templates: Dict[str, PromptTemplate] = {}
        self._initialize_default_templates()

    def _initialize_default_templates(self):
        self.templates["legal_expert"] = PromptTemplate(
            name="legal_expert",
            strategy=PromptStrategy.ROLE_BASED,
            system_prompt=(
                "You are a sworn legal translator working between {source_lang} and {target_lang} "
                "for Algerian law. Translate from {source_lang} to {target_lang} using the "
                "established legal terminology.\n\n" + _PURITY_RULES
            ),
        )
        self.templates["legal_few_shot"] = PromptTemplate(
            name="legal_few_shot",
            strategy=PromptStrategy.FEW_SHOT,
            system_prompt=(
                "You are a precise legal translator. Translate from {source_lang} to "
                "{target_lang}, following the examples.\n\n" + _PURITY_RULES
            ),
            few_shot_examples=[
                ("Le contrat est nul pour vice du consentement.", "العقد باطل لعيب في الرضا."),
                ("يحق للمدعي الطعن بالاستئناف.", "Le demandeur a le droit d’interjeter appel."),
            ],
        )

    def get_template(self, name: str) -> PromptTemplate:
        if name not in self.templates:
            raise KeyError(f"Unknown prompt template: {name}")
        return self.templates[name]

    def build_prompt(
        self,
        source_text: str,
        source_language: Language,
        target_language: Language,
        glossary_section: str = "",
        domain_hint: Optional[str] = None,
        template_name: str = "legal_expert",
        temperature: float = 0.2,
    ) -> EnginePrompt:
        template = self.get_template(template_name)
        template.usage_count += 1
        return EnginePrompt(
            system=template.render_system(source_language, target_language, glossary_section, domain_hint),
            user=source_text,
            source_language=source_language,
            target_language=target_language,
            temperature=temperature,
        )
