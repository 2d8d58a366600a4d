"""Keep the sections artifact and remote mirror in step with saved documents."""

from __future__ import annotations

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Document
from .services import index_document, remove_document_mirror


@receiver(post_save, sender=Document, dispatch_uid='smartlinker_index_document')
def document_saved(sender, instance: Document, raw: bool = False, **kwargs) -> None:
    # Fixture loading saves rows before related data exists
    if raw:
        return
    index_document(instance)


@receiver(post_delete, sender=Document, dispatch_uid='smartlinker_remove_mirror')
def document_deleted(sender, instance: Document, **kwargs) -> None:
    remove_document_mirror(instance.pk)
