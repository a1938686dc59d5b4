"""Task-keyed prompt templates and temperature presets.

The catalog is data: adding a task type means adding an entry here. The
entry's output format drives normalization in the analysis pipeline.
"""

from dataclasses import dataclass
from typing import Mapping, Optional

from app.core.schemas_orchestration import (
    TEMPERATURE_BY_CLASS,
    OutputFormat,
    TemperatureClass,
)


@dataclass(frozen=True)
class PromptEntry:
    """Fixed instruction template for one task type."""
    template: str
    temperature_class: TemperatureClass
    output_format: OutputFormat

    @property
    def temperature(self) -> float:
        return TEMPERATURE_BY_CLASS[self.temperature_class]


@dataclass(frozen=True)
class BuiltPrompt:
    template: str
    temperature: float
    output_format: OutputFormat


_ARTWORK_HEADER = "Artwork title: {title}\nMedium: {medium}\nImage: {image_url}\n\n"
_PORTFOLIO_HEADER = "Artist: {title}\nPortfolio overview:\n{description}\n\n"
_REPORT_FORMAT = """

Respond ONLY with a JSON object of the form
{{"summary": "<one paragraph>", "recommendations": ["<actionable recommendation>", ...]}}"""

PROMPT_CATALOG: dict[str, PromptEntry] = {
    "description": PromptEntry(
        template=_ARTWORK_HEADER
        + """Analyze this artwork and provide a detailed, engaging description in 2-3 paragraphs that covers:
- Visual elements and composition
- Artistic style and technique
- Mood and atmosphere
- Potential meaning or themes
Keep the tone professional but accessible.""",
        temperature_class=TemperatureClass.CREATIVE,
        output_format=OutputFormat.PROSE,
    ),
    "style": PromptEntry(
        template=_ARTWORK_HEADER
        + """Identify the primary and secondary artistic styles evident in this artwork.
Consider historical art movements, contemporary style categories, and any fusion or hybrid styles.
Return ONLY a comma-separated list of style tags.""",
        temperature_class=TemperatureClass.FACTUAL,
        output_format=OutputFormat.TAGS,
    ),
    "techniques": PromptEntry(
        template=_ARTWORK_HEADER
        + """List the main artistic techniques and mediums used in this artwork.
Consider materials, application methods (e.g. impasto, glazing, digital layering), and special effects.
Return ONLY a comma-separated list.""",
        temperature_class=TemperatureClass.FACTUAL,
        output_format=OutputFormat.TAGS,
    ),
    "keywords": PromptEntry(
        template=_ARTWORK_HEADER
        + """Suggest relevant keywords for this artwork that help search and categorization, covering:
subject matter, style, mood and emotion, technical aspects, color palette, and themes.
Do not invent cultural or geographical references.
Return ONLY a comma-separated list.""",
        temperature_class=TemperatureClass.FACTUAL,
        output_format=OutputFormat.TAGS,
    ),
    "title": PromptEntry(
        template="""Create a creative, engaging title for this artwork.
Description: {description}
Image: {image_url}

Respond with just the title, no additional text.""",
        temperature_class=TemperatureClass.CREATIVE,
        output_format=OutputFormat.LINE,
    ),
    "bio": PromptEntry(
        template="""I have scraped content from a website that might contain a bio or about information.
Extract a professional bio or CV from it. If the content has multiple sections, use multiple paragraphs.
Don't leave any relevant information out. Do not include contact information.
Return plain text paragraphs only: no markdown, headers, section titles, bullet points or lists.

Source: {source_url}
Content to analyze:
{description}""",
        temperature_class=TemperatureClass.CREATIVE,
        output_format=OutputFormat.PROSE,
    ),
    "portfolio_composition": PromptEntry(
        template=_PORTFOLIO_HEADER
        + """Assess the composition of this portfolio: range and coherence of subjects, styles and mediums,
gaps in the body of work, and which pieces anchor it."""
        + _REPORT_FORMAT,
        temperature_class=TemperatureClass.BALANCED,
        output_format=OutputFormat.REPORT,
    ),
    "portfolio_presentation": PromptEntry(
        template=_PORTFOLIO_HEADER
        + """Assess how this portfolio is presented: titles, descriptions, image quality, ordering,
and how well the artist's story comes across to visitors."""
        + _REPORT_FORMAT,
        temperature_class=TemperatureClass.BALANCED,
        output_format=OutputFormat.REPORT,
    ),
    "portfolio_pricing": PromptEntry(
        template=_PORTFOLIO_HEADER
        + """Assess the pricing of this portfolio: consistency across sizes and mediums,
positioning for the artist's stage, and how sales history supports or contradicts current prices."""
        + _REPORT_FORMAT,
        temperature_class=TemperatureClass.FACTUAL,
        output_format=OutputFormat.REPORT,
    ),
    "portfolio_market": PromptEntry(
        template=_PORTFOLIO_HEADER
        + """Assess this portfolio's market position: which collectors it appeals to, demand signals
from views and favorites, and opportunities the artist is missing."""
        + _REPORT_FORMAT,
        temperature_class=TemperatureClass.BALANCED,
        output_format=OutputFormat.REPORT,
    ),
}

class _BlankDefault(dict):
    def __missing__(self, key: str) -> str:
        return ""


def build_prompt(
    task_type: str,
    artifact_descriptor: Mapping[str, str],
    catalog: Optional[Mapping[str, PromptEntry]] = None,
) -> BuiltPrompt:
    """
    Render the catalog template for a task type.

    Args:
        task_type: Catalog key (e.g. "description", "keywords")
        artifact_descriptor: Substitution values; unknown placeholders render empty
        catalog: Alternate catalog (defaults to PROMPT_CATALOG)

    Returns:
        BuiltPrompt with rendered template, temperature and output format

    Raises:
        KeyError: If the task type is not in the catalog
    """
    entry = (catalog if catalog is not None else PROMPT_CATALOG)[task_type]
    rendered = entry.template.format_map(_BlankDefault(artifact_descriptor))
    return BuiltPrompt(
        template=rendered,
        temperature=entry.temperature,
        output_format=entry.output_format,
    )
