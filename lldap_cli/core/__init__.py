"""Core client logic, independent of the command-line interface.

Module Structure:
    - lldap/        : GraphQL client, session lifecycle and domain services
    - validators.py : Input validation (usernames, emails, shell arguments)
    - audit.py      : Structured audit trail on stderr
    - redaction.py  : Credential scrubbing for messages and logs

Import explicitly when needed:
    from lldap_cli.core.lldap import LldapClient, UserService
    from lldap_cli.core.validators import validate_email
"""
