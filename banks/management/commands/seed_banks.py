from django.core.management.base import BaseCommand
from banks.models import Bank

BANKS = [
    {
        "code": "AL BARAKA",
        "name": "AL BARAKA BANK TUNISIA",
        "logo": "https://s3.eu-west-3.amazonaws.com/konnect.network.public/media/logos/banks/32.png",
    },
    {
        "code": "ALUBAF",
        "name": "ALUBAF INTERNATIONAL BANK",
        "logo": "https://s3.eu-west-3.amazonaws.com/s3.konnect.network/bank/1658529901589",
    },
]


class Command(BaseCommand):
    help = "Create or update the partner banks offered to marketplace users"

    def handle(self, *args, **options):
        for data in BANKS:
            bank, created = Bank.objects.update_or_create(
                code=data["code"],
                defaults={"name": data["name"], "logo": data["logo"]},
            )
            verb = "Created" if created else "Updated"
            self.stdout.write(f"  - {verb} {bank.code}: {bank.name}")

        self.stdout.write(self.style.SUCCESS(f"Seeded {len(BANKS)} bank(s)."))
