"""Print the guarded route table and the navigation menu of every role.

Usage:
    python -m tutorflow.print_navigation
"""
import sys

from tutorflow.domain import Role
from tutorflow.routing.guard import ROUTES, home_for
from tutorflow.routing.navigation import menu_for


def format_roles(roles) -> str:
    if roles is None:
        return 'public'
    return ', '.join(role.value for role in Role if role in roles)


def main() -> None:
    out = sys.stdout
    out.write('Routes\n')
    for route in ROUTES:
        out.write(f'  {route.pattern:<40} {route.view:<18} {format_roles(route.roles)}\n')

    for role in Role:
        menu = menu_for(role)
        out.write(f'\n{menu.title} ({role.value}, home {home_for(role)})\n')
        for item in menu.items:
            out.write(f'  {item.name:<20} {item.path}\n')


if __name__ == "__main__":
    main()
