from django.core.exceptions import ObjectDoesNotExist
from django.core.management.base import BaseCommand, CommandError

from api.services import UserService


class Command(BaseCommand):
    help = 'Переназначает ревьюверов открытых PR, которые остались за неактивными пользователями'

    def add_arguments(self, parser):
        parser.add_argument('--team', dest='team_name', default=None,
                            help='Ограничиться неактивными ревьюверами одной команды')

    def handle(self, *args, **options):
        team_name = options['team_name']
        try:
            touched = UserService().reconcile_inactive_reviewers(team_name)
        except ObjectDoesNotExist as e:
            raise CommandError(str(e))

        self.stdout.write(self.style.SUCCESS(f'Reconciled {touched} reviewer slot(s)'))
