"""Management command to resync storage usage with stored catalog entries."""

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from server.apps.catalog.infrastructure.metadata import format_file_size
from server.apps.catalog.logic.quota_operations import (
    calculate_usage,
    get_or_create_quota,
    recalculate_usage,
    usage_breakdown,
)

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Recompute ``used_bytes`` from the sizes of stored files."""

    help = 'Recalculate storage usage of users from their catalog entries'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--user',
            dest='username',
            help='Only recalculate this user (default: all users)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show the recalculated usage without saving it',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the recalculation.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If ``--user`` names an unknown user.
        """
        dry_run = options['dry_run']
        users = get_user_model().objects.order_by('pk')
        if options['username']:
            users = users.filter(username=options['username'])
            if not users.exists():
                raise CommandError(f'Unknown user: {options["username"]}')

        changed = 0
        for user in users:
            previous = get_or_create_quota(user).used_bytes
            if dry_run:
                total = calculate_usage(user)
            else:
                total = recalculate_usage(user)
            if total != previous:
                changed += 1

            self.stdout.write(
                f'{user.username}: {format_file_size(previous)} -> '
                f'{format_file_size(total)}',
            )
            for category, size_bytes in usage_breakdown(user).items():
                if size_bytes:
                    self.stdout.write(
                        f'  {category}: {format_file_size(size_bytes)}',
                    )

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would update {changed} quotas'),
            )
        else:
            logger.info('Recalculated quotas, %d changed', changed)
            self.stdout.write(
                self.style.SUCCESS(f'Updated {changed} quotas'),
            )
