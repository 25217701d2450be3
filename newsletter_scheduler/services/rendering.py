"""Newsletter rendering with Jinja2 templates and inlined CSS."""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape
from premailer import Premailer

from newsletter_scheduler.infrastructure.config import get_templates_dir
from newsletter_scheduler.infrastructure.logging import LoggerMixin
from newsletter_scheduler.models.content import ContentItem
from newsletter_scheduler.models.email import extract_text_from_html
from newsletter_scheduler.models.schedule import RenderedContent

TEMPLATE_NAME = "newsletter.html"


def build_subject(topics: Sequence[str]) -> str:
    if len(topics) == 1:
        return f"Your {topics[0]} Newsletter"
    return "Your Personalized Newsletter"


def build_introduction(topics: Sequence[str]) -> str:
    if len(topics) == 1:
        joined = topics[0]
    else:
        joined = ", ".join(topics[:-1]) + f" and {topics[-1]}"
    return f"Here are the latest articles about {joined} for you."


class EmailRenderer(LoggerMixin):
    """Turns per-topic content items into the frozen content of a delivery."""

    def __init__(
        self,
        templates_dir: Optional[Path] = None,
        base_url: Optional[str] = None,
        preferences_url: str = "",
    ):
        self.templates_dir = templates_dir or get_templates_dir()
        self.preferences_url = preferences_url
        self.jinja_env = Environment(
            loader=FileSystemLoader(self.templates_dir),
            autoescape=select_autoescape(['html', 'xml']),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.base_url = base_url

    def render(
        self,
        topic_items: Sequence[Tuple[str, Sequence[ContentItem]]],
        recipient_name: str = "",
    ) -> RenderedContent:
        """Render content for the topics that have items.

        Args:
            topic_items: ``(topic, items)`` pairs in section order
            recipient_name: Shown in the masthead when present

        Returns:
            RenderedContent with subject, introduction, item list and bodies
        """
        populated = [(topic, list(items)) for topic, items in topic_items if items]
        topics = [topic for topic, _ in populated]
        subject = build_subject(topics)
        introduction = build_introduction(topics)

        stored_items: List[Dict[str, Any]] = []
        sections = []
        for topic, items in populated:
            newsletter_items = [item.to_newsletter_item() for item in items]
            stored_items.extend(newsletter_items)
            sections.append({
                "topic": topic,
                "items": [self._with_label(entry) for entry in newsletter_items],
            })

        template = self.jinja_env.get_template(TEMPLATE_NAME)
        html = template.render(
            subject=subject,
            introduction=introduction,
            sections=sections,
            recipient_name=recipient_name,
            preferences_url=self.preferences_url,
        )
        html = self._inline_css(html)

        self.logger.debug("Newsletter rendered", topics=topics, items=len(stored_items))

        return RenderedContent(
            subject=subject,
            introduction=introduction,
            items=stored_items,
            html=html,
            text=extract_text_from_html(html),
        )

    @staticmethod
    def _with_label(entry: Dict[str, Any]) -> Dict[str, Any]:
        label = ""
        if entry.get("published_date"):
            label = datetime.fromisoformat(entry["published_date"]).strftime("%b %d, %Y")
        return {**entry, "published_label": label}

    def _inline_css(self, html_content: str) -> str:
        """Inline CSS styles for better email client compatibility."""
        try:
            return Premailer(
                html_content,
                base_url=self.base_url,
                remove_classes=False,
                keep_style_tags=True,
                strip_important=False,
                disable_validation=True,
            ).transform()
        except Exception as e:
            self.logger.warning("Failed to inline CSS, using original HTML", error=str(e))
            return html_content
