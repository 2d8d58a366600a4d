"""List the models offered by the configured AI provider."""

from __future__ import annotations

from django.core.management.base import BaseCommand

from smartlinker.services import get_services


class Command(BaseCommand):
    help = 'List available models for the configured AI provider and check the configured model.'

    def handle(self, *args, **options) -> None:
        provider = get_services().provider
        models = provider.list_models()
        for model_id, label in sorted(models.items()):
            marker = '*' if model_id == provider.model else ' '
            self.stdout.write(f"{marker} {model_id}\t{label}")

        if provider.model in models:
            self.stdout.write(self.style.SUCCESS(f"{provider.label} model {provider.model} is available."))
        else:
            self.stdout.write(
                self.style.WARNING(
                    f"{provider.label} model {provider.model} is not listed; "
                    f"{provider.resolve_model()} will be used instead."
                )
            )
