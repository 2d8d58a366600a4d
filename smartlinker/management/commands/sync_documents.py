"""Hourly sweep re-indexing every published document."""

from __future__ import annotations

from django.core.management.base import BaseCommand

from smartlinker.services import sync_all_documents


class Command(BaseCommand):
    help = 'Re-segment published documents and refresh their sections artifact and remote mirror.'

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            '--retry-delay',
            type=float,
            default=None,
            help='Seconds to wait before retrying a document after a transient failure.',
        )

    def handle(self, *args, **options) -> None:
        report = sync_all_documents(retry_delay=options['retry_delay'])
        self.stdout.write(
            self.style.SUCCESS(
                f"Synced {report.processed} documents ({report.retried} retried, {len(report.failed)} failed)."
            )
        )
        if report.failed:
            ids = ', '.join(str(document_id) for document_id in report.failed)
            self.stderr.write(f"Failed documents: {ids}")
