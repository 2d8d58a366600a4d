"""Database models for the smartlinker app.

Documents are the hosted content the linker analyzes. Each document keeps
its segmented-sections artifact, the active set of validated link
suggestions from the latest analysis, and an append-only log of links
that editors have applied.
"""

from __future__ import annotations

import re

from django.conf import settings
from django.db import models

from .engine.text import html_to_text

EXCERPT_WORDS = 55


class Category(models.Model):
    name = models.CharField(max_length=200, unique=True)

    class Meta:
        ordering = ['name']
        verbose_name_plural = 'categories'

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return self.name


class Document(models.Model):
    """A post or page whose content may receive internal links."""

    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        PUBLISH = 'publish', 'Published'
        TRASH = 'trash', 'Trash'

    class Kind(models.TextChoices):
        ARTICLE = 'article', 'Article'
        PAGE = 'page', 'Page'
        ATTACHMENT = 'attachment', 'Attachment'

    title = models.CharField(max_length=300)
    slug = models.SlugField(max_length=200, unique=True)
    content = models.TextField(blank=True)
    excerpt = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.DRAFT, db_index=True)
    kind = models.CharField(max_length=16, choices=Kind.choices, default=Kind.ARTICLE, db_index=True)
    categories = models.ManyToManyField(Category, blank=True, related_name='documents')
    created_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        ordering = ['-modified_at']

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return self.title

    @property
    def is_published(self) -> bool:
        return self.status == self.Status.PUBLISH

    @property
    def permalink(self) -> str:
        base = getattr(settings, 'SMARTLINKER_SITE_URL', '').rstrip('/')
        return f"{base}/{self.slug}/"

    def get_excerpt(self) -> str:
        """Return the stored excerpt, or the first words of the content."""

        if self.excerpt.strip():
            return self.excerpt.strip()
        words = re.split(r'\s+', html_to_text(self.content))
        words = [word for word in words if word]
        text = ' '.join(words[:EXCERPT_WORDS])
        return f"{text}…" if len(words) > EXCERPT_WORDS else text


class DocumentSections(models.Model):
    """Segmented-sections artifact of a document's latest saved content."""

    document = models.OneToOneField(Document, on_delete=models.CASCADE, related_name='sections_artifact')
    sections = models.JSONField(default=list)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'document sections'

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.document} · {len(self.sections)} sections"


class LinkSuggestion(models.Model):
    """One member of a document's active suggestion set."""

    document = models.ForeignKey(Document, on_delete=models.CASCADE, related_name='suggestions')
    target = models.ForeignKey(Document, on_delete=models.CASCADE, related_name='incoming_suggestions')
    section_index = models.PositiveIntegerField()
    anchor_text = models.CharField(max_length=300)
    relevance_score = models.FloatField()
    section_content = models.TextField()
    target_title = models.CharField(max_length=300, blank=True)
    position = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['document', 'position']
        constraints = [
            models.UniqueConstraint(fields=['document', 'section_index'], name='one_suggestion_per_section'),
        ]

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.document} · §{self.section_index} → {self.target_id}"


class AppliedLink(models.Model):
    """Append-only record of a link inserted into a document."""

    document = models.ForeignKey(Document, on_delete=models.CASCADE, related_name='applied_links')
    target_document_id = models.PositiveIntegerField()
    section_index = models.PositiveIntegerField()
    anchor_text = models.CharField(max_length=300)
    applied_at = models.DateTimeField()

    class Meta:
        ordering = ['document', 'applied_at', 'id']

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.document} → {self.target_document_id} ({self.anchor_text})"
