from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from lab.auth_views import MOCK_USERNAME
from lab.features import Feature
from lab.models import Laboratory, Profile
from lab.roles import Role

User = get_user_model()

DEMO_SLUG = 'demo'
DEMO_BRANCHES = ['Centro', 'Este', 'Oeste']

# residente and citotecno are bound to one site to exercise branch scoping
ASSIGNED_BRANCH = {
    Role.RESIDENTE: 'Centro',
    Role.CITOTECNO: 'Centro',
}


class Command(BaseCommand):
    help = "Ensure the demo laboratory and one user per role exist, password=123456 (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument('--slug', default=DEMO_SLUG, help='Laboratory slug to attach the users to')
        parser.add_argument('--password', default='123456')

    def handle(self, *args, **opts):
        lab, created = Laboratory.objects.get_or_create(
            slug=opts['slug'],
            defaults={
                'name': 'Laboratorio Demo',
                'features': {f.value: True for f in Feature},
                'config': {'branches': DEMO_BRANCHES},
            },
        )
        if created:
            self.stdout.write(self.style.SUCCESS(f"created laboratory {lab}"))

        for role in Role:
            username = MOCK_USERNAME.format(role=role.value)
            u, _ = User.objects.get_or_create(username=username, defaults={'is_active': True})
            # reset password and activation every run
            u.set_password(opts['password'])
            u.is_active = True
            u.save()
            Profile.objects.update_or_create(
                user=u,
                defaults={
                    'laboratory': lab,
                    'role': role.value,
                    'display_name': f'{role.label} (demo)',
                    'assigned_branch': ASSIGNED_BRANCH.get(role),
                    'estado': 'aprobado',
                },
            )
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role.value})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
